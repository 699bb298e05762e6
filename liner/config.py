"""Application settings loaded from .env via pydantic-settings."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration — values come from environment / .env file."""

    # Spotify (identity provider + catalog)
    spotify_api_base: str = "https://api.spotify.com/v1"
    catalog_page_size: int = 50

    # App
    public_base_url: str = "http://localhost:3000"
    log_level: str = "INFO"

    # Database
    db_path: str = "./data/liner.db"

    # Sharing
    access_log_size: int = 100
    enforce_require_auth: bool = True
    anonymous_name: str = "Anonymous"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def db_abs_path(self) -> Path:
        """Return the database path as an absolute Path, creating parents if needed."""
        p = Path(self.db_path)
        p.parent.mkdir(parents=True, exist_ok=True)
        return p.resolve()

    def share_url(self, share_token: str) -> str:
        return f"{self.public_base_url.rstrip('/')}/shared/{share_token}"


@lru_cache
def get_settings() -> Settings:
    """Cached singleton so .env is read only once."""
    return Settings()
