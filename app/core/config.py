import os
from pydantic_settings import BaseSettings


REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
STORE_BACKEND = os.getenv("STORE_BACKEND", "redis")  # redis | memory


class Settings(BaseSettings):
    REDIS_URL: str = REDIS_URL
    STORE_BACKEND: str = STORE_BACKEND
    REDIS_CONNECT_RETRIES: int = 30

    JWT_SECRET: str = os.getenv("JWT_SECRET", "change_me")
    JWT_ALGORITHM: str = "HS256"
    JWT_EXP_MINUTES: int = 60 * 24

    DEFAULT_DECK: str = "battles"   # ключ из BUILTIN_DECKS
    DEFAULT_TIME_LIMIT: int = 20    # секунд
    LEADERBOARD_LIMIT: int = 10

    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    class Config:
        env_file = ".env"


settings = Settings()
