from typing import Optional

from sqlalchemy.orm import Session

from . import models


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == email).first()


def update_profile(
    db: Session,
    user: models.User,
    full_name: Optional[str] = None,
    avatar_url: Optional[str] = None,
) -> models.User:
    if full_name:
        user.full_name = full_name
    if avatar_url:
        user.avatar_url = avatar_url
    db.commit()
    db.refresh(user)
    return user
