import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from . import crud, models
from .db import get_db
from .settings import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(
    data: dict, expires_delta: Optional[timedelta] = None
) -> str:
    to_encode = data.copy()
    expire = datetime.utcnow() + (
        expires_delta
        if expires_delta
        else timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire, "jti": uuid.uuid4().hex})
    encoded_jwt = jwt.encode(
        to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm
    )
    return encoded_jwt


def credentials_error(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


class AuthProvider:
    """Session capability: sign-in, sign-out and current-user lookup."""

    def __init__(self, db: Session):
        self.db = db

    def _decode(self, token: Optional[str]) -> dict:
        if not token:
            raise credentials_error("No active session. Please sign in again.")
        try:
            return jwt.decode(
                token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
            )
        except JWTError:
            raise credentials_error("Invalid authentication token.")

    def _issue_token(self, user: models.User) -> str:
        return create_access_token({"sub": str(user.id), "email": user.email})

    def register(self, email: str, password: str, full_name: Optional[str] = None) -> str:
        if crud.get_user_by_email(self.db, email):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already registered",
            )
        user = models.User(
            email=email,
            password_hash=get_password_hash(password),
            full_name=full_name,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info("Registered user %s", user.id)
        return self._issue_token(user)

    def authenticate(self, email: str, password: str) -> Optional[models.User]:
        user = crud.get_user_by_email(self.db, email)
        if not user or not verify_password(password, user.password_hash):
            return None
        return user

    def sign_in(self, email: str, password: str) -> str:
        user = self.authenticate(email, password)
        if user is None:
            raise credentials_error("Invalid email or password")
        return self._issue_token(user)

    def current_user(self, token: Optional[str]) -> models.User:
        payload = self._decode(token)
        jti = payload.get("jti")
        if jti and self.db.get(models.RevokedToken, jti) is not None:
            raise credentials_error("Session has been signed out. Please sign in again.")

        user_id: Optional[str] = payload.get("sub")
        try:
            user_id_int = int(user_id)
        except (TypeError, ValueError):
            raise credentials_error()

        user = self.db.get(models.User, user_id_int)
        if user is None:
            raise credentials_error()
        return user

    def sign_out(self, token: Optional[str]) -> None:
        payload = self._decode(token)
        jti = payload.get("jti")
        if not jti or self.db.get(models.RevokedToken, jti) is not None:
            return
        expires_at = datetime.utcfromtimestamp(payload.get("exp", 0))
        self.db.add(models.RevokedToken(jti=jti, expires_at=expires_at))
        self.db.commit()

    def change_password(
        self, user: models.User, current_password: str, new_password: str
    ) -> None:
        if not current_password or not new_password:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Current password and new password are required",
            )
        if len(new_password) < 6:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="New password must be at least 6 characters long",
            )
        if self.authenticate(user.email, current_password) is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Current password is incorrect",
            )
        user.password_hash = get_password_hash(new_password)
        self.db.commit()
        logger.info("Password changed for user %s", user.id)


def get_auth_provider(db: Session = Depends(get_db)) -> AuthProvider:
    return AuthProvider(db)


def get_current_user(
    auth: AuthProvider = Depends(get_auth_provider),
    token: Optional[str] = Depends(oauth2_scheme),
) -> models.User:
    return auth.current_user(token)
