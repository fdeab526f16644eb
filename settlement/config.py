"""Application configuration via environment variables."""

from pathlib import Path
from pydantic_settings import BaseSettings

PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    database_url: str = f"sqlite:///{PROJECT_ROOT / 'settlement.db'}"
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:3000"]  # Next.js dev server

    # Auth: tokens are issued by the hosted auth service, we only verify them
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_audience: str | None = None  # Supabase access tokens carry aud="authenticated"
    jwt_expire_minutes: int = 1440  # only used by the dev CLI when minting tokens
    admin_role: str = "admin"

    # Price service
    price_service_url: str = "http://localhost:3000/api/trading/price"
    price_timeout_seconds: float = 5.0
    default_quote_currency: str = "USDT"

    # Open-trade sweep (expiry + stop-loss / take-profit triggers)
    sweep_enabled: bool = True
    sweep_interval_seconds: int = 15

    model_config = {"env_prefix": "STL_", "env_file": ".env"}


settings = Settings()
