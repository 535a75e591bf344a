"""Environment configuration for the share registry service"""
from pydantic import BaseModel
from dotenv import load_dotenv
from pathlib import Path
from typing import List, Optional
import os

ROOT_DIR = Path(__file__).parent.parent
load_dotenv(ROOT_DIR / '.env')


class Settings(BaseModel):
    mongo_url: Optional[str] = None
    db_name: str = "attendance_register"
    registry_backend: str = "mongo"
    share_ttl_minutes: Optional[int] = None  # None = codes never expire
    supersede_old_codes: bool = False
    teacher_password: str = "school123"
    cors_origins: List[str] = ["*"]
    port: int = 8080


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_settings() -> Settings:
    """Build settings from the process environment (and .env, loaded at import)"""
    mongo_url = (os.environ.get('MONGO_URL') or '').strip() or None
    backend = os.environ.get('REGISTRY_BACKEND')
    if not backend:
        backend = "mongo" if mongo_url else "memory"

    ttl = os.environ.get('SHARE_TTL_MINUTES')

    return Settings(
        mongo_url=mongo_url,
        db_name=os.environ.get('DB_NAME', 'attendance_register'),
        registry_backend=backend.strip().lower(),
        share_ttl_minutes=int(ttl) if ttl else None,
        supersede_old_codes=_env_flag('SUPERSEDE_OLD_CODES'),
        teacher_password=os.environ.get('TEACHER_PASSWORD', 'school123'),
        cors_origins=os.environ.get('CORS_ORIGINS', '*').split(','),
        port=int(os.environ.get('PORT', 8080)),
    )


settings = load_settings()


def get_settings() -> Settings:
    """FastAPI dependency for the active settings"""
    return settings
