from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "Tenant Onboarding"
    version: str = "0.1.0"
    DEBUG: bool = False
    APP_DATABASE_DSN: str = "sqlite:////tmp/onboarding.db"
    REDIS_URL: str = "redis://localhost:6379"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Catalog / pricing
    DEFAULT_CURRENCY: str = "USD"
    MAX_BRANCH_COUNT: int = 100

    # Payment providers
    PAYMENT_PROVIDER: str = "stripe"  # "stripe" or "demo"
    stripe_api_key: str = ""

    # Payment orchestration (caller-driven retry bounds)
    PAYMENT_MAX_ATTEMPTS: int = 3
    PAYMENT_COMPLETE_MAX_ATTEMPTS: int = 5

    # Onboarding API client
    ONBOARDING_API_URL: str = "http://localhost:8000"
    ONBOARDING_API_TIMEOUT_SECONDS: float = 30.0

    # One-time codes for email/phone verification
    OTP_TTL_SECONDS: int = 600
    OTP_MAX_ATTEMPTS: int = 5
    OTP_REQUESTS_PER_WINDOW: int = 5
    OTP_RATE_WINDOW_SECONDS: int = 3600
    OTP_HASH_SECRET: str = "otp_default_secret"

    # SMTP
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True
    SMTP_FROM_EMAIL: str = "no-reply@example.com"
    SMTP_FROM_NAME: str = "Tenant Onboarding"

    # Housekeeping
    IDEMPOTENCY_RETENTION_HOURS: int = 24

    @property
    def smtp_enabled(self) -> bool:
        return bool(self.SMTP_HOST)


settings = Settings()
