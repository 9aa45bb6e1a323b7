"""
Application configuration.
All settings are loaded from environment variables.
Use env.example as a reference for required variables.
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: Credentials have no defaults - they MUST be set in .env file.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    # Comma-separated, e.g. http://localhost:3000,https://reader.example.com. Empty = built-in list.
    cors_origins: str = ""

    # ===========================================
    # DATABASE (PostgreSQL; sqlite:// is accepted for local runs)
    # ===========================================
    database_url: str  # Required, no default

    # ===========================================
    # REDIS (rate limit, idempotency keys)
    # ===========================================
    redis_url: str = "redis://localhost:6379/0"

    # ===========================================
    # IDENTITY PROVIDER
    # ===========================================
    jwt_secret_key: str  # Required, no default
    jwt_algorithm: str = "HS256"

    # ===========================================
    # SUBSCRIPTIONS
    # ===========================================
    subscription_price_tokens: int = 130
    subscription_price_cash: float = 4.99
    subscription_currency: str = "usd"
    # Gateway recorded on cash purchases (settlement itself is not verified here)
    cash_payment_method: str = "stripe"

    # ===========================================
    # DONATIONS: {tier_id: {"price": cash, "tokens": granted}}
    # ===========================================
    donation_tiers: str = (
        '{"tier1": {"price": 0.99, "tokens": 50},'
        ' "tier2": {"price": 4.99, "tokens": 275},'
        ' "tier3": {"price": 9.99, "tokens": 600},'
        ' "tier4": {"price": 19.99, "tokens": 1300}}'
    )

    # ===========================================
    # PURCHASE GUARDS
    # ===========================================
    purchase_rate_limit: int = 10  # max purchases per window
    purchase_rate_window_seconds: int = 60
    idempotency_ttl: int = 300  # 5 minutes

    # ===========================================
    # LOGGING
    # ===========================================
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("jwt_secret_key")
    @classmethod
    def validate_jwt_secret(cls, v: str) -> str:
        """Ensure the shared identity secret is reasonably secure."""
        if len(v) < 16:
            raise ValueError("jwt_secret_key must be at least 16 characters")
        if v in ("changeme", "secret", "password"):
            raise ValueError("jwt_secret_key is too weak, please change it")
        return v

    @field_validator("subscription_price_tokens")
    @classmethod
    def validate_subscription_price(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("subscription_price_tokens must be positive")
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
