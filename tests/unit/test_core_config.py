"""Tests for application configuration.

Settings for database, API, authentication and the PERT scoring/compliance
policy. Tests cover defaults, env var loading, policy ordering, and
production security validation.
"""

import uuid

import pytest
from pydantic import ValidationError

from pathfinder.core.config import _INSECURE_DEFAULT_PASSWORD, Settings

# Reusable test constants
_SECURE_DB_PASSWORD = "my-secure-production-password-123!"
_TEST_AUTH_SECRET = "a" * 64
_PRODUCTION = "production"


class TestProductionSecurityValidation:
    """Tests for production security requirements."""

    def test_allows_default_password_in_development(self):
        """Default password is allowed in development environment."""
        s = Settings(
            environment="development",
            database_password=_INSECURE_DEFAULT_PASSWORD,
        )
        assert s.database_password == _INSECURE_DEFAULT_PASSWORD

    def test_rejects_default_password_in_production(self):
        """Default password is rejected in production environment."""
        with pytest.raises(ValidationError) as exc_info:
            Settings(
                environment=_PRODUCTION,
                database_password=_INSECURE_DEFAULT_PASSWORD,
            )

        errors = exc_info.value.errors()
        assert len(errors) == 1
        assert "Cannot use default database password in production" in str(
            errors[0]["msg"]
        )

    def test_url_override_skips_password_check(self):
        """A full database URL makes the password fields irrelevant."""
        s = Settings(
            environment=_PRODUCTION,
            database_url_override="sqlite+aiosqlite:///./pathfinder.db",
        )
        assert s.database_url == "sqlite+aiosqlite:///./pathfinder.db"


class TestDatabaseUrl:
    """Tests for database URL assembly."""

    def test_builds_asyncpg_url_from_fields(self):
        """Host, port, name and credentials form the async URL."""
        s = Settings(
            database_host="db",
            database_port=5433,
            database_name="pert",
            database_user="u",
            database_password="p",
        )
        assert s.database_url == "postgresql+asyncpg://u:p@db:5433/pert"
        assert s.database_url_sync == "postgresql://u:p@db:5433/pert"


class TestAuthConfigDefaults:
    """Auth settings have correct defaults."""

    def test_auth_enabled_defaults_to_false(self):
        """Auth is disabled by default for local development."""
        s = Settings()
        assert s.auth_enabled is False

    def test_auth_secret_defaults_to_empty(self):
        """Auth secret is empty by default (not required in local mode)."""
        s = Settings()
        assert s.auth_secret.get_secret_value() == ""

    def test_auth_issuer_defaults_to_pathfinder(self):
        """JWT issuer claim defaults to 'pathfinder'."""
        s = Settings()
        assert s.auth_issuer == "pathfinder"

    def test_default_user_id_defaults_to_none(self):
        """Default user ID is None when not set."""
        s = Settings()
        assert s.default_user_id is None


class TestAuthProductionValidation:
    """Production validation for auth settings."""

    def test_rejects_empty_auth_secret_in_production_when_auth_enabled(self):
        """Auth secret must be set when auth is enabled in production."""
        with pytest.raises(ValidationError) as exc_info:
            Settings(
                environment=_PRODUCTION,
                database_password=_SECURE_DB_PASSWORD,
                auth_enabled=True,
                auth_secret="",
            )
        assert "AUTH_SECRET must be set" in str(exc_info.value)

    def test_rejects_auth_secret_at_boundary_minus_one(self):
        """Auth secret of exactly 31 chars is rejected in production."""
        with pytest.raises(ValidationError) as exc_info:
            Settings(
                environment=_PRODUCTION,
                database_password=_SECURE_DB_PASSWORD,
                auth_enabled=True,
                auth_secret="a" * 31,
            )
        assert "AUTH_SECRET must be at least 32 characters" in str(exc_info.value)

    def test_allows_auth_secret_at_exact_boundary(self):
        """Auth secret of exactly 32 chars is accepted in production."""
        s = Settings(
            environment=_PRODUCTION,
            database_password=_SECURE_DB_PASSWORD,
            auth_enabled=True,
            auth_secret="a" * 32,
        )
        assert len(s.auth_secret.get_secret_value()) == 32

    def test_allows_empty_auth_secret_in_development_with_auth_enabled(self):
        """Auth secret not required in development even with auth enabled."""
        s = Settings(auth_enabled=True, auth_secret="")
        assert s.auth_secret.get_secret_value() == ""


class TestPertPolicyValidation:
    """Scoring thresholds must be ordered and in range."""

    def test_defaults(self):
        """Defaults match the documented policy."""
        s = Settings()
        assert s.pert_min_relevance == 0.5
        assert s.pert_level1_threshold == 0.7
        assert s.pert_level2_threshold == 0.9
        assert s.pert_ai_weight == 0.7
        assert s.pert_max_characters == 5000

    def test_rejects_unordered_thresholds(self):
        """Level 1 threshold above level 2 is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            Settings(pert_level1_threshold=0.95, pert_level2_threshold=0.9)
        assert "PERT thresholds must satisfy" in str(exc_info.value)

    def test_rejects_min_relevance_at_level1(self):
        """Minimum relevance must sit strictly below the level 1 threshold."""
        with pytest.raises(ValidationError):
            Settings(pert_min_relevance=0.7)

    @pytest.mark.parametrize("weight", [0.5, 0.3, 1.1])
    def test_rejects_non_dominant_ai_weight(self, weight: float):
        """AI weight must be in (0.5, 1]."""
        with pytest.raises(ValidationError) as exc_info:
            Settings(pert_ai_weight=weight)
        assert "PERT_AI_WEIGHT" in str(exc_info.value)

    def test_rejects_zero_saturation(self):
        """Keyword saturation must be positive."""
        with pytest.raises(ValidationError):
            Settings(pert_keyword_saturation=0)

    @pytest.mark.parametrize("ceiling", [0, 5001])
    def test_rejects_character_ceiling_out_of_range(self, ceiling: int):
        """The ceiling may be lowered but never raised past 5000."""
        with pytest.raises(ValidationError) as exc_info:
            Settings(pert_max_characters=ceiling)
        assert "PERT_MAX_CHARACTERS" in str(exc_info.value)

    def test_accepts_lower_ceiling(self):
        """A stricter ceiling is allowed."""
        s = Settings(pert_max_characters=3000)
        assert s.pert_max_characters == 3000


class TestCorsWildcardValidation:
    """CORS wildcard incompatible with credentials."""

    def test_rejects_wildcard_origin(self):
        """Wildcard origin is rejected (incompatible with credentials)."""
        with pytest.raises(ValidationError) as exc_info:
            Settings(allowed_origins=["*"])
        assert "must not contain '*'" in str(exc_info.value)

    def test_allows_specific_origins(self):
        """Specific origins are accepted."""
        s = Settings(allowed_origins=["http://localhost:3000"])
        assert s.allowed_origins == ["http://localhost:3000"]


class TestConfigEnvLoading:
    """Settings loaded from environment variables."""

    def test_auth_enabled_loaded_from_env(self, monkeypatch: pytest.MonkeyPatch):
        """AUTH_ENABLED env var is correctly parsed as boolean."""
        monkeypatch.setenv("AUTH_ENABLED", "true")
        s = Settings()
        assert s.auth_enabled is True

    def test_default_user_id_loaded_from_env(self, monkeypatch: pytest.MonkeyPatch):
        """DEFAULT_USER_ID env var is parsed as a UUID."""
        user_id = uuid.uuid4()
        monkeypatch.setenv("DEFAULT_USER_ID", str(user_id))
        s = Settings()
        assert s.default_user_id == user_id

    def test_pert_threshold_loaded_from_env(self, monkeypatch: pytest.MonkeyPatch):
        """PERT_LEVEL2_THRESHOLD env var is parsed as float."""
        monkeypatch.setenv("PERT_LEVEL2_THRESHOLD", "0.85")
        s = Settings()
        assert s.pert_level2_threshold == 0.85

    def test_evr_rule_loaded_from_env(self, monkeypatch: pytest.MonkeyPatch):
        """EVR_SPAN_MONTHS env var is parsed as int."""
        monkeypatch.setenv("EVR_SPAN_MONTHS", "24")
        s = Settings()
        assert s.evr_span_months == 24
