from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    APP_NAME: str = "Requisition Portal"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    PORT: int = 8000

    BACKEND_API_URL: str = "http://localhost:8080/api"
    BACKEND_TIMEOUT_SECONDS: float = 10.0
    BACKEND_CONNECT_TIMEOUT_SECONDS: float = 5.0
    BACKEND_READ_RETRIES: int = 3
    BACKEND_HEALTH_PATH: str = "/health"

    CACHE_TTL_SECONDS: int = 60
    ADMIN_ROLE: str = "ADMIN"

    CORS_ORIGINS: str = "http://localhost:3000"
    CORS_ORIGIN_REGEX: Optional[str] = None

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
