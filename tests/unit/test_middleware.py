"""
Unit tests for security helpers and API middleware.
"""

from datetime import timedelta

import pytest

from librarium.api.middleware.cors import get_cors_config
from librarium.api.middleware.logging import redact_sensitive_data
from librarium.api.middleware.rate_limit import InMemoryRateLimiter, RateLimitConfig
from librarium.security import (
    TokenError,
    create_access_token,
    decode_access_token,
    get_password_hash,
    verify_password,
)


class TestPasswords:
    """Tests for password hashing."""

    def test_hash_and_verify(self):
        hashed = get_password_hash("secret123")

        assert hashed != "secret123"
        assert verify_password("secret123", hashed) is True
        assert verify_password("secret124", hashed) is False


class TestTokens:
    """Tests for JWT access tokens."""

    def test_round_trip_claims(self):
        token = create_access_token({"sub": "7", "role": "admin"}, "key")

        payload = decode_access_token(token, "key")

        assert payload["sub"] == "7"
        assert payload["role"] == "admin"
        assert "exp" in payload

    def test_wrong_key(self):
        token = create_access_token({"sub": "7"}, "key")

        with pytest.raises(TokenError):
            decode_access_token(token, "other-key")

    def test_expired(self):
        token = create_access_token({"sub": "7"}, "key", expires_delta=timedelta(seconds=-10))

        with pytest.raises(TokenError):
            decode_access_token(token, "key")

    def test_missing_subject(self):
        token = create_access_token({"role": "admin"}, "key")

        with pytest.raises(TokenError):
            decode_access_token(token, "key")


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
class TestRateLimiter:
    """Tests for the fixed-window limiter."""

    async def test_blocks_after_max_attempts(self):
        limiter = InMemoryRateLimiter(RateLimitConfig(max_attempts=3), clock=FakeClock())

        results = [await limiter.check_rate_limit("ip:1.2.3.4") for _ in range(4)]

        assert [allowed for allowed, _, _ in results] == [True, True, True, False]
        assert [remaining for _, remaining, _ in results] == [2, 1, 0, 0]

    async def test_window_resets(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(RateLimitConfig(max_attempts=1, window_seconds=60), clock=clock)

        assert (await limiter.check_rate_limit("a"))[0] is True
        assert (await limiter.check_rate_limit("a"))[0] is False

        clock.now += 60
        assert (await limiter.check_rate_limit("a"))[0] is True

    async def test_clients_are_independent(self):
        limiter = InMemoryRateLimiter(RateLimitConfig(max_attempts=1), clock=FakeClock())

        assert (await limiter.check_rate_limit("a"))[0] is True
        assert (await limiter.check_rate_limit("b"))[0] is True

    async def test_reset(self):
        limiter = InMemoryRateLimiter(RateLimitConfig(max_attempts=1), clock=FakeClock())
        await limiter.check_rate_limit("a")

        await limiter.reset()

        assert (await limiter.check_rate_limit("a"))[0] is True


class TestLoggingHelpers:
    """Tests for log redaction."""

    def test_redacts_nested_fields(self):
        data = {"email": "a@example.com", "password": "x", "items": [{"Token": "t", "id": 1}]}

        redacted = redact_sensitive_data(data, {"password", "token"})

        assert redacted == {
            "email": "a@example.com",
            "password": "[REDACTED]",
            "items": [{"Token": "[REDACTED]", "id": 1}],
        }


class TestCorsConfig:
    """Tests for CORS presets."""

    def test_extra_origins_appended(self):
        config = get_cors_config("production", "https://a.example.com, https://b.example.com")

        assert config.allowed_origins[-2:] == ["https://a.example.com", "https://b.example.com"]

    def test_presets_not_mutated(self):
        get_cors_config("production", "https://a.example.com")

        assert "https://a.example.com" not in get_cors_config("production").allowed_origins

    def test_unknown_environment_uses_development(self):
        assert get_cors_config("test") == get_cors_config("development")

    def test_any_origin_drops_credentials(self):
        options = get_cors_config("development").middleware_options()

        assert options["allow_origins"] == ["*"]
        assert options["allow_credentials"] is False

    def test_production_options(self):
        options = get_cors_config("production").middleware_options()

        assert options["allow_origins"] == ["https://librarium.example.com"]
        assert options["allow_credentials"] is True
        assert "Retry-After" in options["expose_headers"]
