"""Application settings and configuration.

This module defines all configuration options for the Wallet SSO service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientConfig(BaseModel):
    """A client application allowed to request sign-ins."""

    name: str
    redirect_url: str
    allowed_origins: list[str] = Field(default_factory=list)
    client_secret: str | None = None


def _default_clients() -> dict[str, ClientConfig]:
    return {
        "demo-client": ClientConfig(
            name="Demo Client",
            redirect_url="http://localhost:3001/callback",
            allowed_origins=["http://localhost:3001"],
        )
    }


class Settings(BaseSettings):
    """Service settings loaded from environment variables.

    Every field can be overridden via its upper-case alias in the environment
    or in an `.env` file. Durations carry their unit in the field name.
    """

    # Application metadata
    app_name: str = Field(default="Wallet SSO", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Token signing
    secret_key: str = Field(alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_issuer: str = Field(default="wallet-sso", alias="JWT_ISSUER")
    access_token_expire_seconds: int = Field(default=900, alias="JWT_ACCESS_TOKEN_EXPIRY")
    refresh_token_expire_seconds: int = Field(
        default=60 * 60 * 24 * 7,
        alias="JWT_REFRESH_TOKEN_EXPIRY",
    )

    # Database configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/sso.db",
        alias="DATABASE_URL",
    )
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Connection pool (milliseconds for all durations)
    db_pool_min: int = Field(default=2, ge=0, le=20, alias="DB_POOL_MIN")
    db_pool_max: int = Field(default=10, ge=1, le=50, alias="DB_POOL_MAX")
    db_pool_acquire_timeout_ms: int = Field(
        default=30_000, ge=1, alias="DB_POOL_ACQUIRE_TIMEOUT"
    )
    db_pool_idle_timeout_ms: int = Field(default=300_000, ge=1, alias="DB_POOL_IDLE_TIMEOUT")
    db_pool_reap_interval_ms: int = Field(default=1_000, ge=10, alias="DB_POOL_REAP_INTERVAL")

    # Redis cache; caching is disabled when unset
    redis_url: str | None = Field(default=None, alias="REDIS_URL")
    redis_socket_timeout_seconds: float = Field(default=5.0, alias="REDIS_SOCKET_TIMEOUT")
    cache_ttl_session_seconds: int = Field(default=900, alias="CACHE_TTL_SESSION")
    cache_ttl_challenge_seconds: int = Field(default=300, alias="CACHE_TTL_CHALLENGE")
    cache_ttl_client_seconds: int = Field(default=7_200, alias="CACHE_TTL_CLIENT")
    cache_ttl_ratelimit_seconds: int = Field(default=60, alias="CACHE_TTL_RATELIMIT")

    # Challenge and authorization code lifetimes
    challenge_ttl_ms: int = Field(default=300_000, alias="CHALLENGE_TTL")
    auth_code_ttl_ms: int = Field(default=300_000, alias="AUTH_CODE_TTL")

    # Sign-in message contents
    siwe_domain: str = Field(default="wallet-sso.localhost", alias="SIWE_DOMAIN")
    siwe_uri: str = Field(default="http://localhost:3000", alias="SIWE_URI")
    siwe_statement: str = Field(
        default="Sign this message to authenticate with Wallet SSO",
        alias="SIWE_STATEMENT",
    )
    siwe_version: str = Field(default="1", alias="SIWE_VERSION")
    siwe_chain_id: str = Field(default="kusama", alias="SIWE_CHAIN_ID")
    siwe_resources: list[str] = Field(
        default=["https://wallet-sso.localhost"],
        alias="SIWE_RESOURCES",
    )

    # Background maintenance
    maintenance_interval_seconds: float = Field(default=60.0, alias="MAINTENANCE_INTERVAL")
    audit_retention_days: int = Field(default=90, alias="AUDIT_RETENTION_DAYS")

    # Registered client applications
    clients: dict[str, ClientConfig] = Field(
        default_factory=_default_clients,
        alias="SSO_CLIENTS",
    )

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        populate_by_name=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts async driver URLs so Alembic can run migrations with the
        synchronous drivers.

        Returns:
            Database URL compatible with synchronous database drivers
        """
        url = self.database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        if url.startswith("sqlite+aiosqlite"):
            return url.replace("sqlite+aiosqlite", "sqlite", 1)
        return url

    @property
    def cache_ttls(self) -> dict[str, int]:
        """Return the per-entity cache TTL policy in seconds."""
        return {
            "session": self.cache_ttl_session_seconds,
            "challenge": self.cache_ttl_challenge_seconds,
            "client": self.cache_ttl_client_seconds,
            "ratelimit": self.cache_ttl_ratelimit_seconds,
        }


settings = Settings()  # type: ignore[call-arg]
