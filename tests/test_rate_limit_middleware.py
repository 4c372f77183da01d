"""Behavior-focused tests for rate limiting middleware."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from chat_signaling.adapters.web.rate_limit_middleware import (
    EventRateLimiter,
    RateLimitMiddleware,
    extract_client_ip,
    extract_retry_after,
)


class TestExtractClientIp:
    """Tests for client IP extraction behavior."""

    def test_when_x_forwarded_for_has_chain_then_returns_first_ip(self) -> None:
        """Given X-Forwarded-For with IP chain, when extracting, then returns original client IP."""
        request = MagicMock()
        request.headers = {"X-Forwarded-For": "203.0.113.50, 70.41.3.18, 150.172.238.178"}
        request.client = None

        result = extract_client_ip(request)

        assert result == "203.0.113.50"

    def test_when_x_forwarded_for_has_whitespace_then_trims_ip(self) -> None:
        """Given X-Forwarded-For with whitespace, when extracting, then returns trimmed IP."""
        request = MagicMock()
        request.headers = {"X-Forwarded-For": "  192.168.1.1  , 10.0.0.1"}
        request.client = None

        result = extract_client_ip(request)

        assert result == "192.168.1.1"

    def test_when_x_forwarded_for_empty_then_uses_direct_client_ip(self) -> None:
        """Given empty X-Forwarded-For, when extracting, then falls back to direct IP."""
        request = MagicMock()
        request.headers = {"X-Forwarded-For": ""}
        request.client = MagicMock()
        request.client.host = "192.168.1.100"

        result = extract_client_ip(request)

        assert result == "192.168.1.100"

    def test_when_no_client_info_available_then_returns_unknown(self) -> None:
        """Given no client information, when extracting, then returns 'unknown'."""
        request = MagicMock()
        request.headers = {}
        request.client = None

        result = extract_client_ip(request)

        assert result == "unknown"


class TestExtractRetryAfter:
    """Tests for retry_after extraction from rate limit results."""

    def test_when_result_has_state_with_retry_after_then_extracts_it(self) -> None:
        """Given result with state.retry_after, when extracting, then returns that value."""
        result = MagicMock()
        result.state = MagicMock()
        result.state.retry_after = 45.5

        assert extract_retry_after(result) == 45.5

    def test_when_result_has_direct_retry_after_then_extracts_it(self) -> None:
        """Given result with direct retry_after, when extracting, then returns that value."""
        result = MagicMock(spec=["retry_after"])
        result.retry_after = 30.0

        assert extract_retry_after(result) == 30.0

    def test_when_result_has_no_retry_after_then_returns_default(self) -> None:
        """Given result without retry_after, when extracting, then returns 60 seconds default."""
        assert extract_retry_after(MagicMock(spec=[])) == 60.0


class TestEventRateLimiter:
    """Tests for the per-connection signaling event limiter."""

    def test_when_within_budget_then_events_are_allowed(self) -> None:
        """Given a budget of 3, when sending 3 events, then all are allowed."""
        limiter = EventRateLimiter("conn-1", events_per_minute=3)

        assert [limiter.allow() for _ in range(3)] == [True, True, True]

    def test_when_budget_exhausted_then_events_are_refused(self) -> None:
        """Given a budget of 2, when sending a third event at once, then it is refused."""
        limiter = EventRateLimiter("conn-1", events_per_minute=2)
        limiter.allow()
        limiter.allow()

        assert limiter.allow() is False

    def test_when_connections_differ_then_budgets_are_separate(self) -> None:
        """Given two connections, when one is exhausted, then the other still sends."""
        first = EventRateLimiter("conn-1", events_per_minute=1)
        second = EventRateLimiter("conn-2", events_per_minute=1)
        first.allow()

        assert first.allow() is False
        assert second.allow() is True


class TestRateLimitMiddlewareDispatch:
    """Tests for rate limit middleware dispatch behavior."""

    def test_when_rate_limited_then_returns_429_with_retry_header(self) -> None:
        """Given rate limit exceeded, when creating response, then returns 429 with Retry-After."""
        middleware = RateLimitMiddleware(app=MagicMock(), requests_per_minute=100)

        response = middleware._create_rate_limit_response("192.168.1.1", 45.5)

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "45"
        assert b"Rate limit exceeded" in response.body

    @pytest.mark.asyncio
    async def test_when_within_limit_then_requests_pass_through(self) -> None:
        """Given rpm>0 and within limit, when processing request, then passes through."""
        middleware = RateLimitMiddleware(app=MagicMock(), requests_per_minute=10)

        request = MagicMock()
        request.headers = {}
        request.client = MagicMock()
        request.client.host = "192.168.1.1"

        expected_response = MagicMock()
        call_next = AsyncMock(return_value=expected_response)

        response = await middleware.dispatch(request, call_next)

        assert response == expected_response
        call_next.assert_called_once_with(request)

    @pytest.mark.asyncio
    async def test_when_exceeding_limit_then_returns_429(self) -> None:
        """Given rpm=1, when sending a second request, then returns 429."""
        middleware = RateLimitMiddleware(app=MagicMock(), requests_per_minute=1)

        request = MagicMock()
        request.headers = {}
        request.client = MagicMock()
        request.client.host = "192.168.1.1"

        expected_response = MagicMock()
        call_next = AsyncMock(return_value=expected_response)

        response1 = await middleware.dispatch(request, call_next)
        assert response1 == expected_response

        response2 = await middleware.dispatch(request, call_next)

        assert response2.status_code == 429
        assert "Retry-After" in response2.headers
        assert call_next.call_count == 1
