import json
import os
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parents[1]
load_dotenv(ROOT / ".env", override=False)


class Settings(BaseSettings):
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }

    app_name: str = "NoLie AI"
    log_level: str = "INFO"
    jwt_secret: str = "dev-secret-change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    database_url: str = "sqlite:///./nolie.db"

    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash"
    summary_model: str = "gemini-pro"
    analysis_max_chars: int = 2000
    compare_max_chars: int = 1000

    avatar_dir: str = "./media/avatars"
    avatar_max_bytes: int = 5 * 1024 * 1024
    public_base_url: str = "http://localhost:8000"

    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:3001",
        "http://localhost:5173",
    ]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, value):
        default_origins = list(cls.model_fields["cors_origins"].default or [])
        if value is None:
            return default_origins
        if isinstance(value, list):
            return value
        if isinstance(value, str):
            raw = value.strip()
            if not raw:
                return default_origins
            if raw.startswith("["):
                try:
                    parsed = json.loads(raw)
                except json.JSONDecodeError:
                    parsed = None
                if isinstance(parsed, list):
                    return parsed
            items = [item.strip() for item in raw.split(",") if item.strip()]
            return items or default_origins
        return value

    @field_validator("avatar_dir")
    @classmethod
    def normalize_avatar_dir(cls, value: str) -> str:
        path = os.path.abspath(os.path.expanduser(value))
        return os.path.normpath(path)

    @field_validator("public_base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    return Settings()
