from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


SANDBOX_PROCESS_URL = "https://sandbox.payfast.co.za/eng/process"
LIVE_PROCESS_URL = "https://www.payfast.co.za/eng/process"
SANDBOX_VALIDATE_URL = "https://sandbox.payfast.co.za/eng/query/validate"
LIVE_VALIDATE_URL = "https://www.payfast.co.za/eng/query/validate"


class Settings(BaseSettings):
    APP_NAME: str = "PayFast Payments & Subscriptions Gateway"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: str = "*"
    CORS_CREDENTIALS: bool = True

    # ── PayFast merchant settings ──
    # Unset means "sandbox unless ENVIRONMENT=production"
    PAYFAST_SANDBOX: Optional[bool] = None
    PAYFAST_MERCHANT_ID: str = ""
    PAYFAST_MERCHANT_KEY: str = ""
    PAYFAST_PASSPHRASE: str = ""
    RETURN_URL: str = ""
    CANCEL_URL: str = ""
    NOTIFY_URL: str = ""

    # ── Subscription API settings ──
    PAYFAST_API_BASE_URL: str = "https://api.payfast.co.za"
    PAYFAST_API_VERSION: str = "v1"
    TESTING_MODE: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def sandbox(self) -> bool:
        if self.PAYFAST_SANDBOX is not None:
            return self.PAYFAST_SANDBOX
        return not self.is_production

    @property
    def process_url(self) -> str:
        return SANDBOX_PROCESS_URL if self.sandbox else LIVE_PROCESS_URL

    @property
    def validate_url(self) -> str:
        return SANDBOX_VALIDATE_URL if self.sandbox else LIVE_VALIDATE_URL

    @property
    def testing_flag(self) -> str:
        """Lower-case form used in the subscription API query string."""
        return "true" if self.TESTING_MODE else "false"

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = ["development", "staging", "production"]
        if v.lower() not in allowed:
            raise ValueError(f"ENVIRONMENT must be one of: {allowed}")
        return v.lower()


@lru_cache
def get_settings() -> Settings:
    return Settings()
