from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

DEVELOPMENT_ENVS = ("local", "development", "dev", "test")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "local"
    APP_NAME: str = "Bus Booking API"
    # Comma-separated origins for CORS. If empty, uses localhost defaults.
    CORS_ORIGINS: str = ""
    LOG_LEVEL: str = "INFO"

    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    DATABASE_URL: str

    @field_validator("DATABASE_URL", mode="after")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Render and others give postgres://; SQLAlchemy expects postgresql+psycopg2://."""
        if v and v.startswith("postgres://"):
            return "postgresql+psycopg2://" + v[11:]
        return v

    # Departure/arrival times are stored as wall-clock times in this zone
    APP_TIMEZONE: str = "Asia/Jakarta"
    APP_PUBLIC_URL: str = "http://localhost:3000"  # base for payment redirect pages

    # Xendit Invoice API
    XENDIT_SECRET_KEY: str = ""
    XENDIT_API_BASE: str = "https://api.xendit.co"
    XENDIT_WEBHOOK_TOKEN: str = ""  # compared with the x-callback-token header
    XENDIT_TIMEOUT: int = 25
    GATEWAY_CURRENCY: str = "IDR"

    # None -> enabled only in development environments
    PAYMENT_SIMULATION_ENABLED: bool | None = None

    @property
    def is_development(self) -> bool:
        return self.ENV.strip().lower() in DEVELOPMENT_ENVS

    @property
    def payment_simulation_enabled(self) -> bool:
        if self.PAYMENT_SIMULATION_ENABLED is None:
            return self.is_development
        return self.PAYMENT_SIMULATION_ENABLED


settings = Settings()
