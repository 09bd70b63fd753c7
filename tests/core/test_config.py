"""Tests for application configuration."""
import pytest

from core.config import Settings


class TestCorsOriginsParsing:
    """Tests for CORS origins parsing from environment variables."""

    def test_parse_single_origin_string(self) -> None:
        """Single origin string is parsed correctly."""
        settings = Settings(
            _env_file=None,
            database_url="postgresql://test",
            CORS_ORIGINS="http://localhost:5173",
        )
        assert settings.cors_origins == ["http://localhost:5173"]

    def test_parse_origins_with_whitespace_and_trailing_comma(self) -> None:
        """Whitespace is stripped and empty entries are dropped."""
        settings = Settings(
            _env_file=None,
            database_url="postgresql://test",
            CORS_ORIGINS="  http://localhost:5173 , https://example.com ,",
        )
        assert settings.cors_origins == [
            "http://localhost:5173",
            "https://example.com",
        ]

    def test_parse_empty_string(self) -> None:
        """Empty string results in empty list."""
        settings = Settings(
            _env_file=None,
            database_url="postgresql://test",
            CORS_ORIGINS="",
        )
        assert settings.cors_origins == []


class TestTokenSettings:
    """Tests for JWT lifetime and renewal settings."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Seven day lifetime, one hour renewal threshold, HS256, no secret."""
        monkeypatch.delenv("JWT_SECRET", raising=False)
        settings = Settings(_env_file=None, database_url="postgresql://test")
        assert settings.jwt_secret is None
        assert settings.jwt_lifetime == 604_800
        assert settings.jwt_renewal_threshold == 3600
        assert settings.jwt_algorithm == "HS256"
        assert settings.password_reset_expiry_minutes == 60
        assert settings.api_users_group == "api-users"
        assert settings.admin_group == "administrators"

    def test_reads_environment_names(self) -> None:
        """Settings accept their environment variable names."""
        settings = Settings(
            _env_file=None,
            database_url="postgresql://test",
            JWT_SECRET="from-env-secret-with-enough-length-000",
            JWT_LIFETIME=7200,
            JWT_RENEWAL_THRESHOLD=60,
            PASSWORD_RESET_EXPIRY_MINUTES=15,
        )
        assert settings.jwt_secret == "from-env-secret-with-enough-length-000"
        assert settings.jwt_lifetime == 7200
        assert settings.jwt_renewal_threshold == 60
        assert settings.password_reset_expiry_minutes == 15

    def test__threshold_must_be_shorter_than_lifetime(self) -> None:
        """A renewal threshold at or above the lifetime is rejected."""
        with pytest.raises(ValueError, match="must be shorter than JWT_LIFETIME"):
            Settings(
                _env_file=None,
                database_url="postgresql://test",
                JWT_LIFETIME=3600,
                JWT_RENEWAL_THRESHOLD=3600,
            )

    @pytest.mark.parametrize(
        ("lifetime", "threshold"),
        [(0, 10), (-5, 10), (100, 0)],
    )
    def test__non_positive_values_rejected(self, lifetime: int, threshold: int) -> None:
        """Lifetime and threshold must be positive."""
        with pytest.raises(ValueError, match="must be a positive number"):
            Settings(
                _env_file=None,
                database_url="postgresql://test",
                JWT_LIFETIME=lifetime,
                JWT_RENEWAL_THRESHOLD=threshold,
            )
