from decimal import Decimal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "heed-orders-jwt-secret"
MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    app_name: str = "Heed Marketplace Orders"

    database_url: str = Field(
        default="sqlite+pysqlite:///./test.db",
        validation_alias="HEED_DATABASE_URL",
    )
    sqlite_busy_timeout_s: float = 30.0
    cors_allowed_origins: str = "http://localhost:3000,http://localhost:5173"

    jwt_secret: str = DEFAULT_JWT_SECRET
    allowed_roles: str = "USER,ADMIN"
    testing: bool = Field(default=False, validation_alias="HEED_TESTING")

    order_number_prefix: str = "HEED"
    free_shipping_threshold: Decimal = Decimal("500")
    flat_shipping_fee: Decimal = Decimal("50")
    default_inventory_alert_threshold: int = 3
    system_actor_id: str = "system"

    chat_gateway_base_url: str = ""
    chat_gateway_timeout_s: float = 2.0
    chat_gateway_max_retries: int = 2
    chat_gateway_backoff_s: float = 0.2

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings = Settings()


def allowed_origins() -> list[str]:
    return [origin.strip() for origin in settings.cors_allowed_origins.split(",") if origin.strip()]


def allowed_roles_list() -> list[str]:
    return [value.strip() for value in settings.allowed_roles.split(",") if value.strip()]


def ensure_secure_runtime_settings() -> None:
    """Fail fast when production-like runtime uses insecure defaults."""
    if settings.testing:
        return
    if settings.jwt_secret == DEFAULT_JWT_SECRET:
        raise RuntimeError("JWT_SECRET must be set to a non-default value when HEED_TESTING is false")
    if len(settings.jwt_secret) < MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET must be at least {MIN_SECRET_LENGTH} characters when HEED_TESTING is false"
        )
    if _is_sqlite_url(settings.database_url):
        raise RuntimeError("HEED_DATABASE_URL must use postgres when HEED_TESTING is false")


def _is_sqlite_url(database_url: str) -> bool:
    value = database_url.strip().lower()
    return value.startswith("sqlite")
