# clinic_scheduler/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ===== App =====
    APP_NAME: str = "clinic_scheduler"
    ENV: str = "dev"
    # Fixed clinic offset in minutes from UTC (GMT-3). "now" is always read here,
    # never from the requester's clock.
    CLINIC_UTC_OFFSET_MINUTES: int = -180

    # ===== Slots =====
    SLOT_MINUTES: int = 30
    # Extra minutes after "now" during which slots are no longer offered.
    # 0 = every slot that has not started yet is bookable.
    BOOKING_LEAD_MINUTES: int = 0

    # ===== Store =====
    # memory:// | redis://host:6379/0 | any SQLAlchemy URL (local default: SQLite)
    STORE_URL: str = "sqlite:///./clinic.db"

    # Pool options for SQL backends other than SQLite
    DB_POOL_SIZE: int = 2
    DB_MAX_OVERFLOW: int = 5
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800  # 30 min

    # Every store call is bounded; a timeout is reported as "try again"
    STORE_TIMEOUT_SECONDS: float = 5.0
    STORE_READ_RETRIES: int = 3
    STORE_RETRY_DELAY_SECONDS: float = 0.2
    LOCK_TIMEOUT_SECONDS: float = 10.0

    # ===== Mailgun =====
    MAILGUN_API_KEY: Optional[str] = None
    MAILGUN_DOMAIN: Optional[str] = None
    MAILGUN_FROM: Optional[str] = None
    MAILGUN_BASE_URL: str = "https://api.mailgun.net/v3"
    NOTIFY_TIMEOUT_SECONDS: float = 10.0

    # Simulation (True = log e-mails instead of sending them)
    DRY_RUN: bool = False
    DEFAULT_LOCALE: str = "en"

    def model_post_init(self, __context) -> None:
        """
        Normalises values that are easy to get wrong in the environment:
          - retries below 1 mean "try once"
          - a Mailgun domain without an explicit sender gets the postmaster address
        """
        if self.STORE_READ_RETRIES < 1:
            self.STORE_READ_RETRIES = 1

        if self.MAILGUN_DOMAIN and not self.MAILGUN_FROM:
            self.MAILGUN_FROM = f"Clinic Scheduler <postmaster@{self.MAILGUN_DOMAIN}>"


settings = Settings()
