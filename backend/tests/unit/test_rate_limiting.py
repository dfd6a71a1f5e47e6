"""Tests for rate limiting key function, handler and login throttling."""

import json
from unittest.mock import MagicMock

from starlette.requests import Request

from commentkit.core.auth import hash_secret
from commentkit.core.rate_limiting import (
    _rate_limit_key_func,
    limiter,
    rate_limit_exceeded_handler,
)


def _request(headers: dict[str, str] | None = None) -> Request:
    raw = [
        (name.lower().encode("latin-1"), value.encode("latin-1"))
        for name, value in (headers or {}).items()
    ]
    return Request(
        {
            "type": "http",
            "method": "POST",
            "path": "/",
            "headers": raw,
            "client": ("203.0.113.7", 5555),
        }
    )


class TestRateLimitKeyFunc:
    def test_anonymous_keyed_by_ip(self):
        assert _rate_limit_key_func(_request()) == "ip:203.0.113.7"

    def test_session_keyed_by_hash_prefix(self):
        request = _request({"Authorization": "Bearer secret-value"})
        assert _rate_limit_key_func(request) == (
            f"session:{hash_secret('secret-value')[:16]}"
        )

    def test_raw_secret_never_in_key(self):
        request = _request({"Cookie": "ck_auth=secret-value"})
        assert "secret-value" not in _rate_limit_key_func(request)


class TestRateLimitExceededHandler:
    def test_returns_429_envelope(self):
        exc = MagicMock()
        exc.detail = "5 per 1 minute"
        response = rate_limit_exceeded_handler(_request(), exc)
        assert response.status_code == 429
        body = json.loads(response.body)
        assert body["error"]["code"] == "RATE_LIMITED"
        assert "Retry-After" in response.headers

    def test_unparseable_detail_falls_back_to_60(self):
        exc = MagicMock()
        exc.detail = None
        response = rate_limit_exceeded_handler(_request(), exc)
        assert response.headers["Retry-After"] == "60"


class TestLoginThrottle:
    async def test_sixth_login_in_a_minute_is_429(
        self, client, sent_emails, monkeypatch
    ):
        monkeypatch.setattr(limiter, "enabled", True)
        limiter.reset()
        try:
            statuses = []
            for _ in range(6):
                response = await client.post(
                    "/api/v1/auth/login", json={"email": "reader@example.com"}
                )
                statuses.append(response.status_code)
        finally:
            limiter.reset()

        assert statuses[:5] == [200] * 5
        assert statuses[5] == 429
        assert sent_emails.await_count == 5
