from typing import List, Optional

from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./taskboard.db"
    DB_ECHO: bool = False
    REDIS_URL: str = "redis://localhost:6379/0"
    SECRET_KEY: str = "change-me"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440
    API_PORT: int = 8000
    CORS_ORIGINS: List[str] = ["*"]

    # "redis" publishes to the real-time gateway, "log" only writes the event to the log
    BROADCAST_DRIVER: str = "redis"
    # Upper bound for a single recipient's send, in seconds
    BROADCAST_TIMEOUT: float = 2.0

    PAGE_SIZE: int = 15
    MAX_PAGE_SIZE: int = 100

    LOG_LEVEL: str = "INFO"

    # Admin account created at startup when both email and password are set
    DEFAULT_ADMIN_NAME: str = "Admin"
    DEFAULT_ADMIN_EMAIL: Optional[str] = None
    DEFAULT_ADMIN_PASSWORD: Optional[str] = None

    class Config:
        env_file = ".env"

settings = Settings()
