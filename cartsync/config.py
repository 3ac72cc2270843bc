# cartsync/config.py
from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from pathlib import Path
from typing import Optional
from functools import lru_cache

class Settings(BaseSettings):
    ENV: str = "development"
    API_URL: str = "http://localhost:1337"  # marketplace backend (REST + socket.io)
    SOCKET_NAMESPACE: str = "/ws"
    DATA_DIR: Path = Path("data")  # where the guest cart file lives
    GUEST_CART_KEY: str = "cart"
    DEFAULT_CURRENCY: str = "USD"

    # None keeps requests open until the backend answers (no client-side timeout)
    REQUEST_TIMEOUT: Optional[float] = None

    # Example .env:
    # API_URL=https://market.example.com
    # DATA_DIR=./data

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

@lru_cache()
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings()

settings = Settings()
