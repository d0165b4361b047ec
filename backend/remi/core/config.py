from functools import lru_cache
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from pydantic import AnyUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

POSTGRES_SCHEMES = frozenset({"postgres", "postgresql", "postgresql+psycopg", "postgresql+asyncpg"})
_DEFAULT_BACKOFF = [1.0, 2.0, 4.0]


def _scheme(url: str) -> str:
    return url.split(":", 1)[0].lower()


def sqlalchemy_database_url(url: str) -> str:
    """Return ``url`` ready for ``create_engine``.

    Postgres URLs are pointed at psycopg 3 (asyncpg is left alone) and get
    ``sslmode=require`` and a read-write session target unless they already
    say otherwise. Anything else passes through untouched.
    """

    scheme = _scheme(url)
    if scheme not in POSTGRES_SCHEMES:
        return url
    if scheme != "postgresql+asyncpg":
        scheme = "postgresql+psycopg"

    parts = urlsplit(url)
    params = dict(parse_qsl(parts.query, keep_blank_values=True))
    params.setdefault("sslmode", "require")
    params.setdefault("target_session_attrs", "read-write")
    return urlunsplit(parts._replace(scheme=scheme, query=urlencode(params)))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    debug: bool = Field(False, description="Enable FastAPI debug mode")
    environment: str = Field(
        default="development",
        description="Runtime environment (development|staging|production)",
    )
    database_url: AnyUrl | str = Field(
        default="sqlite:///../data/remi.db",
        description="SQLAlchemy compatible database URL",
    )
    primary_db_url: AnyUrl | str | None = Field(
        default=None,
        description="Pooled Postgres connection string used when ENVIRONMENT=production",
    )
    public_base_url: str = Field(
        default="http://localhost:8000",
        description="Externally reachable base URL used to build judge offer links",
    )
    payment_currency: str = Field(
        default="gbp",
        description="ISO currency code for payment intents (amounts are minor units)",
    )
    stripe_secret_key: str | None = Field(
        default=None,
        description="Secret key used to create payment intents and refunds",
    )
    stripe_webhook_secret: str | None = Field(
        default=None,
        description="Signing secret for verifying incoming Stripe webhooks",
    )
    gateway_timeout_seconds: float = Field(
        default=10.0,
        description="HTTP timeout applied to transactional email calls",
        gt=0,
    )
    gateway_retry_attempts: int = Field(
        default=3,
        description="Number of attempts for gateway calls that fail at the transport level",
        ge=1,
    )
    gateway_retry_backoff_seconds: list[float] | tuple[float, ...] | str = Field(
        default_factory=lambda: list(_DEFAULT_BACKOFF),
        description="Comma-separated list or array of backoff delays (seconds) between gateway retries",
    )
    resend_api_base: AnyUrl | str = Field(
        default="https://api.resend.com",
        description="Base URL for the transactional email API",
    )
    resend_api_key: str | None = Field(
        default=None,
        description="API key for transactional email; blank disables delivery",
    )
    email_from: str = Field(
        default="Remi <noreply@remi.local>",
        description="Sender address for transactional email",
    )
    secretary_notify_email: str | None = Field(
        default=None,
        description="Recipient for judge accept/decline notifications",
    )
    judge_offer_ttl_days: int = Field(
        default=30,
        description="Days a judge offer link stays valid after it is sent",
        ge=1,
    )

    @field_validator("primary_db_url")
    @classmethod
    def _primary_must_be_postgres(cls, value: Any) -> Any:
        if value is not None and _scheme(str(value)) not in POSTGRES_SCHEMES:
            raise ValueError("PRIMARY_DB_URL must be a PostgreSQL connection string")
        return value

    @field_validator("payment_currency")
    @classmethod
    def _validate_currency(cls, value: str) -> str:
        candidate = value.strip().lower()
        if len(candidate) != 3 or not candidate.isalpha():
            raise ValueError("PAYMENT_CURRENCY must be a three-letter ISO currency code")
        return candidate

    @field_validator("public_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("gateway_retry_backoff_seconds", mode="before")
    @classmethod
    def _coerce_backoff(cls, value: Any) -> list[float]:
        if value is None or value == "" or value == []:
            return list(_DEFAULT_BACKOFF)
        if isinstance(value, str):
            value = [part for part in (piece.strip() for piece in value.split(",")) if part]
        if not isinstance(value, (list, tuple)) or not value:
            raise ValueError("GATEWAY_RETRY_BACKOFF_SECONDS needs at least one delay")
        try:
            delays = [float(item) for item in value]
        except (TypeError, ValueError) as exc:
            raise ValueError(f"GATEWAY_RETRY_BACKOFF_SECONDS is not numeric: {value!r}") from exc
        if min(delays) < 0:
            raise ValueError("GATEWAY_RETRY_BACKOFF_SECONDS delays cannot be negative")
        return delays

    @property
    def resolved_database_url(self) -> str:
        """Engine URL for this environment; production always runs on PRIMARY_DB_URL."""
        if self.environment.lower() != "production":
            return sqlalchemy_database_url(str(self.database_url))
        if not self.primary_db_url:
            raise ValueError("PRIMARY_DB_URL must be set when ENVIRONMENT=production")
        return sqlalchemy_database_url(str(self.primary_db_url))

    @property
    def gateway_retry_backoff_schedule(self) -> tuple[float, ...]:
        return tuple(float(delay) for delay in self.gateway_retry_backoff_seconds) or (1.0,)


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
