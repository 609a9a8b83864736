from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Optional

class Settings(BaseSettings):
    # Application
    APP_NAME: str = "AgroIkemba Reservas"
    APP_PORT: int = 9202
    DEBUG: bool = False

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "agroikemba"
    POSTGRES_PORT: int = 5432
    SQLALCHEMY_DATABASE_URI: Optional[str] = None  # e.g. sqlite:///./reservas.db

    # Reservations
    RESERVATION_TTL_HOURS: float = 48
    EXPIRING_SOON_HOURS: float = 24
    SWEEP_ON_READ: bool = True

    # Expiry job
    SCHEDULER_ENABLED: bool = True
    EXPIRY_SWEEP_INTERVAL_MINUTES: int = 5

    # Storage retry (transient failures only)
    STORAGE_RETRY_ATTEMPTS: int = 1
    STORAGE_RETRY_WAIT_SECONDS: float = 0.2

    # Paths
    LOGS_PATH: str = "/tmp/agroikemba_logs"

    @property
    def DATABASE_URL(self) -> str:
        if self.SQLALCHEMY_DATABASE_URI:
            return self.SQLALCHEMY_DATABASE_URI
        return f"postgresql+psycopg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

@lru_cache()
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
