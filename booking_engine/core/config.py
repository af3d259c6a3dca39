"""Engine configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""
    
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
    
    # Database (Postgres in production; SQLite file for local use)
    DATABASE_URL: str = "sqlite:///./booking_engine.db"
    
    # Firm defaults, used when a firm row has no explicit policy
    DEFAULT_FIRM_TIMEZONE: str = "UTC"
    DEFAULT_BUFFER_MINUTES: int = 15
    
    # Buffer values a firm may choose (comma-separated minutes)
    ALLOWED_BUFFER_MINUTES: str = "15,30,45,60"
    
    # Slot length when the caller does not pass one or an appointment type
    DEFAULT_SLOT_DURATION_MINUTES: int = 30
    
    # Logging
    LOG_LEVEL: str = "INFO"
    
    @property
    def allowed_buffer_minutes_list(self) -> list[int]:
        """Parse ALLOWED_BUFFER_MINUTES into a sorted list of ints."""
        return sorted(
            int(v.strip()) for v in self.ALLOWED_BUFFER_MINUTES.split(",") if v.strip()
        )
    
    @property
    def is_postgres(self) -> bool:
        """True when DATABASE_URL points at PostgreSQL."""
        return self.DATABASE_URL.startswith("postgresql")


settings = Settings()
