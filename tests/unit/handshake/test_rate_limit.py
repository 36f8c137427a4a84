"""Tests for the inbound friend-request rate limiter."""

import pytest

from site_friends.exceptions import RateLimitedError
from site_friends.handshake.rate_limit import FriendRequestRateLimiter


class TestFriendRequestRateLimiter:
    def test_allows_up_to_the_limit(self):
        limiter = FriendRequestRateLimiter(max_requests=3, window_seconds=60)
        for _ in range(3):
            limiter.check("ip:10.0.0.1")

        with pytest.raises(RateLimitedError) as exc_info:
            limiter.check("ip:10.0.0.1")

        assert exc_info.value.status_code == 429
        assert 1 <= exc_info.value.retry_after <= 61

    def test_keys_are_counted_separately(self):
        limiter = FriendRequestRateLimiter(max_requests=1, window_seconds=60)
        limiter.check("ip:10.0.0.1", "site:https://one.example")

        # Same site from another address is still limited by the site key
        with pytest.raises(RateLimitedError):
            limiter.check("ip:10.0.0.2", "site:https://one.example")
        limiter.check("ip:10.0.0.3", "site:https://two.example")

    def test_rejected_request_is_not_counted(self):
        limiter = FriendRequestRateLimiter(max_requests=1, window_seconds=60)
        limiter.check("site:https://one.example")
        with pytest.raises(RateLimitedError):
            limiter.check("ip:10.0.0.9", "site:https://one.example")

        # The address was not charged for the rejected attempt
        limiter.check("ip:10.0.0.9")

    def test_missing_keys_are_ignored(self):
        limiter = FriendRequestRateLimiter(max_requests=1, window_seconds=60)
        limiter.check(None, "")
        limiter.check(None)

    def test_reset(self):
        limiter = FriendRequestRateLimiter(max_requests=1, window_seconds=60)
        limiter.check("ip:1")
        limiter.reset()
        limiter.check("ip:1")
