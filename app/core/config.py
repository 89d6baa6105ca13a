from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    PROJECT_NAME: str = "ClinicQueue"
    API_V1_STR: str = "/api/v1"
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "password"
    POSTGRES_DB: str = "clinicqueue"
    DATABASE_URL: Optional[str] = None
    REDIS_URL: str = "redis://localhost:6379/0"

    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 12

    CLINIC_TIMEZONE: str = "Asia/Kolkata"

    # Session defaults used when a doctor's configured times are missing or unparseable
    DEFAULT_MORNING_START: str = "09:00"
    DEFAULT_MORNING_END: str = "13:00"
    DEFAULT_EVENING_START: str = "14:00"
    DEFAULT_EVENING_END: str = "18:00"
    DEFAULT_SLOT_DURATION_MINUTES: int = 20

    BOOKING_LEAD_TIME_HOURS: int = 3

    QUEUE_REFRESH_COOLDOWN_SECONDS: int = 15
    WAITING_TIME_TICK_SECONDS: int = 30
    QUEUE_WATCH_IDLE_SECONDS: int = 600
    BREAK_CHECK_TICK_SECONDS: int = 60
    SKIP_SET_TTL_SECONDS: int = 12 * 60 * 60

    LOG_LEVEL: str = "INFO"
    ENABLE_SCHEDULER: bool = True

    class Config:
        case_sensitive = True
        env_file = ".env"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if not self.DATABASE_URL:
            self.DATABASE_URL = f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}/{self.POSTGRES_DB}"

settings = Settings()
