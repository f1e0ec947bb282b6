"""Tests for the Redis fixed-window rate limiter."""

from unittest.mock import MagicMock, patch

import pytest
import redis
from fastapi import HTTPException

from app import rate_limiter


def fake_request(ip="203.0.113.9", forwarded=None):
    request = MagicMock()
    request.headers = {"X-Forwarded-For": forwarded} if forwarded else {}
    request.client.host = ip
    return request


def redis_returning(count):
    client = MagicMock()
    client.pipeline.return_value.execute.return_value = [count, True]
    return client


class TestCheckRateLimit:
    def test_under_limit(self):
        client = redis_returning(3)
        allowed, count, ttl = rate_limiter.check_rate_limit("inquiry_submit:1.2.3.4", 5, 3600, client)

        assert allowed is True
        assert count == 3
        assert 0 < ttl <= 3600
        pipe = client.pipeline.return_value
        key = pipe.incr.call_args.args[0]
        assert key.startswith("inquiry_submit:1.2.3.4:")
        pipe.expire.assert_called_once_with(key, 3600)

    def test_over_limit(self):
        allowed, count, _ = rate_limiter.check_rate_limit("k", 5, 3600, redis_returning(6))
        assert allowed is False
        assert count == 6


class TestClientIp:
    def test_forwarded_header_wins(self):
        assert rate_limiter.client_ip(fake_request(forwarded="198.51.100.1, 10.0.0.1")) == "198.51.100.1"

    def test_falls_back_to_peer(self):
        assert rate_limiter.client_ip(fake_request()) == "203.0.113.9"


class TestDependency:
    async def test_disabled_skips_redis(self):
        with patch.object(rate_limiter, "RATE_LIMIT_ENABLED", False), patch.object(
            rate_limiter, "get_redis_client"
        ) as get_client:
            await rate_limiter.rate_limit_dependency(fake_request(), 5, 3600, "inquiry_submit")
        get_client.assert_not_called()

    async def test_fails_open_when_redis_down(self):
        with patch.object(rate_limiter, "RATE_LIMIT_ENABLED", True), patch.object(
            rate_limiter, "get_redis_client", side_effect=redis.ConnectionError("down")
        ):
            assert await rate_limiter.rate_limit_dependency(fake_request(), 5, 3600, "inquiry_submit") is None

    async def test_rejects_over_limit(self):
        with patch.object(rate_limiter, "RATE_LIMIT_ENABLED", True), patch.object(
            rate_limiter, "get_redis_client", return_value=redis_returning(6)
        ):
            with pytest.raises(HTTPException) as exc_info:
                await rate_limiter.rate_limit_dependency(fake_request(), 5, 3600, "inquiry_submit")

        assert exc_info.value.status_code == 429
        assert int(exc_info.value.headers["Retry-After"]) > 0

    async def test_factory_binds_parameters(self):
        limiter = rate_limiter.create_rate_limiter(limit=1, window_seconds=60, key_prefix="password_reset")
        client = redis_returning(2)
        with patch.object(rate_limiter, "RATE_LIMIT_ENABLED", True), patch.object(
            rate_limiter, "get_redis_client", return_value=client
        ):
            with pytest.raises(HTTPException):
                await limiter(fake_request(ip="192.0.2.5"))

        assert client.pipeline.return_value.incr.call_args.args[0].startswith("password_reset:192.0.2.5:")
