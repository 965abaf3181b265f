"""
Application settings.

Everything configurable is read from environment variables / `.env`.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Settings loaded from the environment."""

    # --- App ---
    env: str = "development"
    log_level: str = "INFO"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    public_base_url: str = "http://localhost:8000"
    seed_demo_user: bool = True
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # --- Persistence ---
    database_url: str = "sqlite:///./signlink.db"
    storage_root: str = "storage"

    # --- Auth ---
    secret_key: str = "change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # --- Documents ---
    max_file_size: int = 10 * 1024 * 1024
    signed_url_ttl_seconds: int = 300

    # --- Transient I/O ---
    retry_attempts: int = 3
    retry_backoff_seconds: float = 0.2

    # --- Signature capture ---
    signature_font_path: Optional[str] = None
    signature_font_size: int = 48

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    """Settings singleton."""
    return Settings()
