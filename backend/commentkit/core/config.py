"""Application configuration loaded from environment variables.

Settings for the database, the trust boundary (token secret and the
statically trusted origins), the session cookie, outbound email, privacy
flags and rate limits. Uses pydantic-settings for validation and .env
file support.
"""

from typing import Literal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
_INSECURE_DEFAULT_PASSWORD = "commentkit_dev_password"  # nosec B105

# Minimum length for AUTH_SECRET in production (256 bits = 32 bytes)
_MIN_AUTH_SECRET_LENGTH = 32

_PRODUCTION = "production"
_DEVELOPMENT = "development"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "commentkit"
    database_user: str = "commentkit_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD
    # Full SQLAlchemy URL; takes precedence over the discrete fields above
    database_url_override: str = ""

    # Application
    environment: str = _DEVELOPMENT
    log_level: str = "INFO"

    # Trust boundary
    # auth_secret keys every HMAC in the service (origin + CSRF tokens).
    auth_secret: SecretStr = SecretStr("dev-secret-change-me")
    # Origin the API itself is served from (also the iframe-bridge origin
    # exempted from strict CSRF matching).
    base_url: str = "http://localhost:8787"
    # Dashboard frontend origin; magic links point here.
    frontend_url: str = "http://localhost:5173"
    # Origin serving the widget iframe. Empty means "same as base_url".
    # Trusted for CORS and as an iframe-bridge origin.
    widget_base_url: str = ""
    # Extra statically trusted CORS origins.
    # CRITICAL: Never "*" - the widget sends credentials (cookies).
    allowed_origins: list[str] = []

    # Session cookie
    auth_cookie_name: str = "ck_auth"

    # Email
    email_from: str = "CommentKit <noreply@commentkit.dev>"
    resend_api_key: SecretStr = SecretStr("")

    # Privacy: off by default
    collect_ip_address: bool = False
    collect_user_agent: bool = False

    # Rate limiting
    rate_limit_enabled: bool = True
    rate_limit_login: str = "5/minute"
    rate_limit_verify: str = "10/minute"

    @property
    def is_production(self) -> bool:
        """True when running with production security settings."""
        return self.environment == _PRODUCTION

    @property
    def is_development(self) -> bool:
        """True only for the explicitly flagged development mode.

        Development relaxes CSRF enforcement and allows the widget init
        domain fallback, so any other value (staging, test) is strict.
        """
        return self.environment == _DEVELOPMENT

    @property
    def auth_cookie_secure(self) -> bool:
        """Secure flag for the session cookie (production only)."""
        return self.is_production

    @property
    def auth_cookie_samesite(self) -> Literal["lax", "none"]:
        """SameSite policy for the session cookie.

        The cookie must ride along with requests issued from a
        cross-origin iframe in production, which needs SameSite=None
        (and therefore Secure).
        """
        return "none" if self.is_production else "lax"

    @property
    def widget_base(self) -> str:
        """Origin that serves the widget iframe."""
        return self.widget_base_url or self.base_url

    @property
    def bridge_origins(self) -> list[str]:
        """Origins the widget's own iframe bridge may send requests from."""
        return [self.base_url, self.frontend_url, self.widget_base]

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def database_url_sync(self) -> str:
        """Sync database URL for Alembic."""
        return (
            f"postgresql://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate production security requirements.

        Checks:
        - CORS must not use wildcard origin (incompatible with credentials)
        - AUTH_SECRET must be set and >= 32 chars in production
        - Database password must not be the default in production
        """
        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "The widget uses credentials (cookies) which are "
                "incompatible with wildcard CORS origins."
            )
            raise ValueError(msg)

        if self.is_production:
            secret_value = self.auth_secret.get_secret_value()
            if len(secret_value) < _MIN_AUTH_SECRET_LENGTH:
                msg = (
                    f"AUTH_SECRET must be at least {_MIN_AUTH_SECRET_LENGTH} "
                    "characters in production. "
                    'Generate with: python -c "import secrets; '
                    'print(secrets.token_hex(32))"'
                )
                raise ValueError(msg)

            if (
                not self.database_url_override
                and self.database_password == _INSECURE_DEFAULT_PASSWORD
            ):
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

        return self


settings = Settings()
