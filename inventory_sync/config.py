"""
Configuration management for the inventory sync service
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Inventory Sync Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["*"]

    # Database
    DATABASE_URL: str = "sqlite:///./inventory.db"

    # Redis (pub/sub relay between API processes and the worker)
    REDIS_URL: str = "redis://localhost:6379/0"

    # Broadcast channel
    BROADCAST_BACKEND: str = "memory"  # "memory" or "redis"
    BROADCAST_QUEUE_SIZE: int = 256  # per-subscriber buffer, overflow is dropped

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"
    CELERY_TASK_ALWAYS_EAGER: bool = True  # no worker needed with the memory backend

    # Cloudinary media store
    CLOUDINARY_CLOUD_NAME: str = ""
    CLOUDINARY_API_KEY: str = ""
    CLOUDINARY_API_SECRET: str = ""
    CLOUDINARY_FOLDER: str = "inventory"

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()
