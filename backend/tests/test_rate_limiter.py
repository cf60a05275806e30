"""
Fixed-window rate limiter tests.
"""

from datetime import datetime, timedelta

import pytest

from twsystem.services.rate_limit_service import RateLimiter, build_limiters

T0 = datetime(2026, 1, 1, 12, 0, 0)


class TestRateLimiter:

    def test_allows_up_to_limit_then_blocks(self):
        limiter = RateLimiter(prefix="test", limit=3, window_seconds=60)

        states = [limiter.check(identity="1.2.3.4", now=T0) for _ in range(4)]

        assert [s.allowed for s in states] == [True, True, True, False]
        assert [s.remaining for s in states] == [2, 1, 0, 0]
        assert states[-1].retry_after_seconds(now=T0) == 61

    def test_window_reopens_after_expiry(self):
        limiter = RateLimiter(prefix="test", limit=1, window_seconds=60)
        assert limiter.check(identity="a", now=T0).allowed
        assert not limiter.check(identity="a", now=T0 + timedelta(seconds=30)).allowed
        assert limiter.check(identity="a", now=T0 + timedelta(seconds=60)).allowed

    def test_identities_are_independent(self):
        limiter = RateLimiter(prefix="test", limit=1, window_seconds=60)
        assert limiter.check(identity="a", now=T0).allowed
        assert limiter.check(identity="b", now=T0).allowed

    def test_reset(self):
        limiter = RateLimiter(prefix="test", limit=1, window_seconds=60)
        limiter.check(identity="a", now=T0)
        limiter.reset("a")
        assert limiter.check(identity="a", now=T0).allowed

    @pytest.mark.parametrize("limit,window", [(0, 60), (5, 0)])
    def test_rejects_invalid_configuration(self, limit, window):
        with pytest.raises(ValueError):
            RateLimiter(prefix="test", limit=limit, window_seconds=window)

    def test_build_limiters_from_config(self):
        limiters = build_limiters({
            "RATE_LIMIT_WINDOW_SECONDS": 900,
            "RATE_LIMIT_MAX_REQUESTS": 100,
            "AUTH_RATE_LIMIT_MAX_REQUESTS": 10,
        })
        assert limiters["api"].limit == 100
        assert limiters["auth"].limit == 10
        assert limiters["auth"].window_seconds == 900


class TestRateLimitedEndpoint:

    def test_login_limited_when_enabled(self, app, client, db_session):
        app.config["RATE_LIMIT_ENABLED"] = True
        limiter = app.extensions["twsystem.rate_limiters"]["auth"]
        limiter.reset()
        app.extensions["twsystem.rate_limiters"]["api"].reset()
        try:
            statuses = [
                client.post("/api/v1/auth/login", json={"email": "x@tw.test", "password": "whatever"}).status_code
                for _ in range(limiter.limit + 1)
            ]
        finally:
            app.config["RATE_LIMIT_ENABLED"] = False
            limiter.reset()
            app.extensions["twsystem.rate_limiters"]["api"].reset()

        assert statuses[:-1] == [401] * limiter.limit
        assert statuses[-1] == 429
