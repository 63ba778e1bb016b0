"""Application configuration via environment variables."""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """App settings loaded from .env or environment."""

    DATABASE_URL: str = "sqlite:///./event_manager.db"
    SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    BCRYPT_ROUNDS: int = 12
    CORS_ORIGINS: str = "*"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Mail
    MAIL_TRANSPORT: str = "log"  # log | smtp | brevo
    MAIL_FROM_ADDRESS: str = "noreply@localhost"
    MAIL_FROM_NAME: str = "Event Manager"
    MAIL_SEND_TIMEOUT_SECONDS: float = 10.0
    MAIL_MAX_ATTEMPTS: int = 3
    MAIL_BACKOFF_SECONDS: float = 2.0
    MAIL_BACKOFF_MAX_SECONDS: float = 30.0
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True
    BREVO_API_KEY: str = ""
    BREVO_API_URL: str = "https://api.brevo.com/v3/smtp/email"

    # Server / supervisor
    HOST: str = "0.0.0.0"
    PORT: int = 5000
    SUPERVISOR_MAX_RESTARTS: int = 5
    SUPERVISOR_RESTART_DELAY_SECONDS: float = 2.0

    class Config:
        env_file = ".env"


settings = Settings()
