"""Application configuration loaded from environment variables.

Settings for database, API, authentication, rate limiting, and the PERT
scoring/compliance policy. Uses pydantic-settings for validation and .env
file support.
"""

import uuid

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "pathfinder_dev_password"  # nosec B105

# Minimum length for AUTH_SECRET in production (256 bits = 32 bytes)
_MIN_AUTH_SECRET_LENGTH = 32


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
    database_name: str = "pathfinder"
    database_user: str = "pathfinder_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD
    # Full SQLAlchemy URL; overrides the host/port/name fields when set
    database_url_override: str = ""

    # API
    # 0.0.0.0 binds to all network interfaces (required for Docker containers)
    api_host: str = "0.0.0.0"  # nosec B104
    api_port: int = 8000

    # CORS (Security)
    # CRITICAL: Never set to ["*"] when allow_credentials=True
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Authentication
    # Local-first mode: DEFAULT_USER_ID provides user context without JWT
    # Hosted mode: auth_enabled=True, JWT cookie required on every request
    default_user_id: uuid.UUID | None = None
    auth_enabled: bool = False
    auth_secret: SecretStr = SecretStr("")
    auth_issuer: str = "pathfinder"
    auth_audience: str = "pathfinder"
    auth_cookie_name: str = "pathfinder.session-token"

    # Rate Limiting (Security)
    # Limits LLM-calling endpoints to prevent abuse and cost explosion
    # Format: "count/period" (e.g., "10/minute", "100/hour")
    rate_limit_llm: str = "10/minute"  # mapping, generation
    rate_limit_enabled: bool = True  # Disable for testing

    # Upper bound on a single AI completion call, in seconds
    llm_timeout_seconds: float = 30.0

    # PERT scoring policy
    pert_min_relevance: float = 0.5
    pert_level1_threshold: float = 0.7
    pert_level2_threshold: float = 0.9
    pert_ai_weight: float = 0.7
    pert_keyword_saturation: float = 3.0
    pert_max_characters: int = 5000

    # EVR compliance rules
    evr_min_competencies: int = 8
    evr_min_level2: int = 2
    evr_span_months: int = 30
    evr_recency_months: int = 12

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
    def check_policy_and_security(self) -> "Settings":
        """Validate scoring policy and production security requirements.

        Checks:
        - Relevance thresholds are ordered 0 <= min < level 1 < level 2 <= 1
        - AI weight is dominant (> 0.5) and at most 1
        - Keyword saturation is positive
        - Character ceiling does not exceed the 5000-character column check
        - CORS must not use wildcard origin (incompatible with credentials)
        - Database password must not be the default in production
        - AUTH_SECRET must be set and >= 32 chars when auth is enabled in production
        """
        if not (
            0.0
            <= self.pert_min_relevance
            < self.pert_level1_threshold
            < self.pert_level2_threshold
            <= 1.0
        ):
            msg = (
                "PERT thresholds must satisfy 0 <= PERT_MIN_RELEVANCE < "
                "PERT_LEVEL1_THRESHOLD < PERT_LEVEL2_THRESHOLD <= 1. Got: "
                f"{self.pert_min_relevance}, {self.pert_level1_threshold}, "
                f"{self.pert_level2_threshold}"
            )
            raise ValueError(msg)

        if not 0.5 < self.pert_ai_weight <= 1.0:
            msg = f"PERT_AI_WEIGHT must be in (0.5, 1]. Got: {self.pert_ai_weight}"
            raise ValueError(msg)

        if self.pert_keyword_saturation <= 0:
            msg = (
                "PERT_KEYWORD_SATURATION must be positive. "
                f"Got: {self.pert_keyword_saturation}"
            )
            raise ValueError(msg)

        if not 0 < self.pert_max_characters <= 5000:
            msg = (
                "PERT_MAX_CHARACTERS must be between 1 and 5000 (the stored "
                f"column ceiling). Got: {self.pert_max_characters}"
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "This application uses credentials (cookies) which are "
                "incompatible with wildcard CORS origins."
            )
            raise ValueError(msg)

        if self.environment == "production":
            if (
                not self.database_url_override
                and self.database_password == _INSECURE_DEFAULT_PASSWORD
            ):
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            if self.auth_enabled:
                secret_value = self.auth_secret.get_secret_value()
                if not secret_value:
                    msg = (
                        "AUTH_SECRET must be set when AUTH_ENABLED=true in production. "
                        'Generate with: python -c "import secrets; '
                        'print(secrets.token_hex(32))"'
                    )
                    raise ValueError(msg)
                if len(secret_value) < _MIN_AUTH_SECRET_LENGTH:
                    msg = (
                        f"AUTH_SECRET must be at least {_MIN_AUTH_SECRET_LENGTH} "
                        "characters for adequate security."
                    )
                    raise ValueError(msg)

        return self


settings = Settings()
