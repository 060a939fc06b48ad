from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./dev.db"
    APP_HOST: str = "127.0.0.1"
    APP_PORT: int = 8000
    SECRET_KEY: str = "change-this-secret-before-deploying-anywhere"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_SECONDS: int = 60 * 60 * 24
    FRONTEND_ORIGINS: List[str] = ["http://localhost:3000"]
    RESET_DB: bool = False
    LOG_LEVEL: str = "INFO"

    # per-product file locks stand in for row locks on SQLite
    STOCK_LOCK_TIMEOUT_SECONDS: int = 10
    STOCK_LOCK_DIR: str = ""

    STATS_RECENT_DAYS: int = 7
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
