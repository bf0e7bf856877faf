"""Application configuration."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str

    # Application
    APP_ENV: str = "development"
    SECRET_KEY: str
    API_V1_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"

    # Frontend
    FRONTEND_URL: str = "http://localhost:3000"

    # OpenAI
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o"
    OPENAI_MAX_TOKENS: int = 2000

    # Email
    RESEND_API_KEY: str = ""
    EMAIL_FROM: str = "Simple Growth Solutions <noreply@simplegrowth.solutions>"
    EMAIL_CONSOLE_MODE: bool = False
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True

    # Stripe
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_PRICE_WEBSITE_MANAGEMENT: str = ""
    STRIPE_PRICE_CYBERSECURITY: str = ""
    STRIPE_PRICE_CHAUFFEUR: str = ""

    # Gusto Integration
    GUSTO_CLIENT_ID: str = ""
    GUSTO_CLIENT_SECRET: str = ""
    GUSTO_REDIRECT_URI: str = "http://localhost:8000/api/payroll/gusto/callback"
    GUSTO_SANDBOX: bool = True

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_STORAGE_URI: str = "memory://"  # e.g. redis://localhost:6379/0
    RATE_LIMIT_DEFAULT: str = "100/minute"
    RATE_LIMIT_AUTH: str = "10/minute"
    RATE_LIMIT_LOGIN: str = "5/minute"
    RATE_LIMIT_SIGNUP: str = "3/hour"
    RATE_LIMIT_PASSWORD_RESET: str = "3/15minutes"
    RATE_LIMIT_AI: str = "20/minute"
    RATE_LIMIT_WEBHOOK: str = "1000/minute"

    # CORS
    @property
    def ALLOWED_ORIGINS(self) -> List[str]:
        if self.APP_ENV == "development":
            return ["*"]  # Allow all origins in development
        return [self.FRONTEND_URL, "http://localhost:3000"]

    @property
    def is_ai_configured(self) -> bool:
        return bool(self.OPENAI_API_KEY)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True
    )


settings = Settings()
