"""
Tests for HTTP checker module.

Tests status classification, retries, deadline handling, rate limiting,
certificate capture, and real requests against a local aiohttp server.
"""

import asyncio
import time
from unittest.mock import AsyncMock, Mock, patch

import aiohttp
import pytest
from aiohttp import web
from aiohttp import test_utils

from uptime_monitor.checkers.http import DomainChecker, ProbeResponse
from uptime_monitor.errors import ErrorType
from uptime_monitor.events import CheckObserver
from uptime_monitor.models import HealthCheckResult, STATUS_DEGRADED, STATUS_DOWN, STATUS_UP
from uptime_monitor.rate_limiter import TokenBucketRateLimiter
from uptime_monitor.retry import RetryPolicy


FAST_RETRY = RetryPolicy(max_retries=3, initial_backoff=0.001, max_backoff=0.01)


def ok_response(status_code=200, final_url="https://example.com", cert_der=None):
    return ProbeResponse(
        status_code=status_code,
        content_length=128,
        final_url=final_url,
        cert_der=cert_der,
    )


@pytest.fixture
def observer():
    return Mock(spec=CheckObserver)


@pytest.fixture
def checker(observer):
    """Create a DomainChecker with fast retries for testing."""
    return DomainChecker(
        rate_limiter=TokenBucketRateLimiter(rate=1000, burst=100),
        retry_policy=FAST_RETRY,
        timeout=10,
        observer=observer,
    )


class TestDomainChecker:
    """Tests for DomainChecker.check with a mocked request."""

    @pytest.mark.asyncio
    async def test_check_success_200(self, checker, observer):
        with patch.object(checker, '_make_request', new_callable=AsyncMock, return_value=ok_response()) as mock_request:
            result = await checker.check("example.com")

        assert isinstance(result, HealthCheckResult)
        assert result.domain == "example.com"
        assert result.url == "https://example.com"
        assert result.status == STATUS_UP
        assert result.status_code == 200
        assert result.content_length == 128
        assert result.attempts == 1
        assert result.is_ssl
        assert result.error_message is None
        assert result.error_type is None
        mock_request.assert_awaited_once_with("https://example.com", 10)
        observer.probe_completed.assert_called_once_with(result)

    @pytest.mark.asyncio
    async def test_redirect_status_is_up(self, checker):
        with patch.object(checker, '_make_request', new_callable=AsyncMock, return_value=ok_response(301)):
            result = await checker.check("example.com")

        assert result.status == STATUS_UP
        assert result.attempts == 1

    @pytest.mark.asyncio
    async def test_client_error_is_degraded_without_retry(self, checker, observer):
        with patch.object(checker, '_make_request', new_callable=AsyncMock, return_value=ok_response(404)) as mock_request:
            result = await checker.check("example.com")

        assert result.status == STATUS_DEGRADED
        assert result.status_code == 404
        assert result.error_message == "HTTP 404"
        assert result.error_type == ErrorType.HTTP_STATUS.value
        assert mock_request.await_count == 1
        observer.retry_scheduled.assert_not_called()

    @pytest.mark.asyncio
    async def test_server_error_retried_until_success(self, checker, observer):
        responses = [ok_response(503), ok_response(502), ok_response(200)]

        with patch.object(checker, '_make_request', new_callable=AsyncMock, side_effect=responses):
            result = await checker.check("example.com")

        assert result.status == STATUS_UP
        assert result.attempts == 3
        assert result.error_message is None
        assert observer.retry_scheduled.call_count == 2
        first_retry = observer.retry_scheduled.call_args_list[0]
        assert first_retry.args[:2] == ("example.com", 0)
        assert first_retry.args[3] == "HTTP 503"

    @pytest.mark.asyncio
    async def test_server_error_exhausts_retries(self, checker):
        with patch.object(checker, '_make_request', new_callable=AsyncMock, return_value=ok_response(503)) as mock_request:
            result = await checker.check("example.com")

        assert result.status == STATUS_DOWN
        assert result.status_code == 503
        assert result.attempts == FAST_RETRY.max_attempts
        assert result.error_message == "HTTP 503"
        assert result.error_type == ErrorType.HTTP_STATUS.value
        assert mock_request.await_count == FAST_RETRY.max_attempts

    @pytest.mark.asyncio
    async def test_transport_error_retried(self, checker):
        errors = [
            aiohttp.ClientConnectionError("connection reset by peer"),
            ok_response(200),
        ]

        with patch.object(checker, '_make_request', new_callable=AsyncMock, side_effect=errors):
            result = await checker.check("example.com")

        assert result.status == STATUS_UP
        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_transport_error_exhausts_retries(self, checker):
        error = aiohttp.ClientConnectionError("connection reset by peer")

        with patch.object(checker, '_make_request', new_callable=AsyncMock, side_effect=error):
            result = await checker.check("example.com")

        assert result.status == STATUS_DOWN
        assert result.status_code == 0
        assert result.attempts == FAST_RETRY.max_attempts
        assert result.error_message.startswith("Request failed:")
        assert "connection reset by peer" in result.error_message
        assert result.error_type == ErrorType.TRANSPORT.value

    @pytest.mark.asyncio
    async def test_timeout_message(self, checker):
        with patch.object(checker, '_make_request', new_callable=AsyncMock, side_effect=asyncio.TimeoutError()):
            result = await checker.check("example.com")

        assert result.status == STATUS_DOWN
        assert result.error_message == "Request failed: request timed out after 10.0s"
        assert result.attempts == FAST_RETRY.max_attempts

    @pytest.mark.asyncio
    async def test_redirect_limit_is_terminal(self, checker):
        error = aiohttp.TooManyRedirects(Mock(real_url="https://example.com"), ())

        with patch.object(checker, '_make_request', new_callable=AsyncMock, side_effect=error) as mock_request:
            result = await checker.check("example.com")

        assert result.status == STATUS_DOWN
        assert result.attempts == 1
        assert result.error_type == ErrorType.REDIRECT_LIMIT.value
        assert "Too many redirects" in result.error_message
        assert mock_request.await_count == 1

    @pytest.mark.asyncio
    async def test_non_transient_error_not_retried(self, checker):
        error = aiohttp.ClientError("invalid header value")

        with patch.object(checker, '_make_request', new_callable=AsyncMock, side_effect=error):
            result = await checker.check("example.com")

        assert result.status == STATUS_DOWN
        assert result.attempts == 1

    @pytest.mark.asyncio
    async def test_http_final_url_has_no_ssl(self, checker):
        response = ok_response(final_url="http://example.com/")

        with patch.object(checker, '_make_request', new_callable=AsyncMock, return_value=response):
            result = await checker.check("http://example.com")

        assert not result.is_ssl
        assert result.ssl_days_left is None


class TestCertificateCapture:
    """Tests for certificate expiry recorded on results."""

    @pytest.mark.asyncio
    async def test_expiry_recorded(self, checker, observer, certificate_der):
        response = ok_response(cert_der=certificate_der(120.5))

        with patch.object(checker, '_make_request', new_callable=AsyncMock, return_value=response):
            result = await checker.check("example.com")

        assert result.ssl_days_left == 120
        assert result.ssl_expiry is not None
        observer.certificate_expiring.assert_not_called()

    @pytest.mark.asyncio
    async def test_expiring_certificate_emits_event(self, checker, observer, certificate_der):
        response = ok_response(cert_der=certificate_der(7.5))

        with patch.object(checker, '_make_request', new_callable=AsyncMock, return_value=response):
            result = await checker.check("example.com")

        assert result.status == STATUS_UP
        assert result.ssl_days_left == 7
        observer.certificate_expiring.assert_called_once()
        domain, days_left, expiry = observer.certificate_expiring.call_args.args
        assert domain == "example.com"
        assert days_left == 7
        assert expiry == result.ssl_expiry

    @pytest.mark.asyncio
    async def test_unparseable_certificate_ignored(self, checker):
        response = ok_response(cert_der=b"garbage")

        with patch.object(checker, '_make_request', new_callable=AsyncMock, return_value=response):
            result = await checker.check("example.com")

        assert result.status == STATUS_UP
        assert result.ssl_days_left is None


class TestDeadlines:
    """Tests for rate limiter and run deadline handling."""

    @pytest.mark.asyncio
    async def test_rate_limiter_gives_up_before_deadline(self):
        limiter = TokenBucketRateLimiter(rate=0.01, burst=1)
        await limiter.acquire()
        checker = DomainChecker(rate_limiter=limiter, retry_policy=FAST_RETRY, timeout=10)

        with patch.object(checker, '_make_request', new_callable=AsyncMock) as mock_request:
            result = await checker.check("example.com", deadline=time.monotonic() + 1.0)

        assert result.status == STATUS_DOWN
        assert result.error_type == ErrorType.RATE_LIMITER_CANCELLED.value
        assert result.error_message.startswith("Rate limiter error:")
        mock_request.assert_not_called()

    @pytest.mark.asyncio
    async def test_deadline_already_passed(self, checker):
        with patch.object(checker, '_make_request', new_callable=AsyncMock) as mock_request:
            result = await checker.check("example.com", deadline=time.monotonic() - 1.0)

        assert result.status == STATUS_DOWN
        assert result.error_type == ErrorType.RUN_DEADLINE_EXCEEDED.value
        assert result.error_message == "Run deadline exceeded before request"
        mock_request.assert_not_called()

    @pytest.mark.asyncio
    async def test_request_timeout_clipped_to_deadline(self, checker):
        deadline = time.monotonic() + 2.0

        with patch.object(checker, '_make_request', new_callable=AsyncMock, return_value=ok_response()) as mock_request:
            await checker.check("example.com", deadline=deadline)

        timeout = mock_request.call_args.args[1]
        assert 0 < timeout <= 2.0

    @pytest.mark.asyncio
    async def test_backoff_cut_short_by_deadline(self):
        checker = DomainChecker(
            rate_limiter=TokenBucketRateLimiter(rate=1000, burst=100),
            retry_policy=RetryPolicy(max_retries=3, initial_backoff=5.0),
            timeout=10,
        )
        start = time.monotonic()

        with patch.object(checker, '_make_request', new_callable=AsyncMock, return_value=ok_response(503)):
            result = await checker.check("example.com", deadline=start + 0.2)

        assert time.monotonic() - start < 2.0
        assert result.status == STATUS_DOWN
        assert result.status_code == 503
        assert result.error_type == ErrorType.RUN_DEADLINE_EXCEEDED.value
        assert result.error_message == "Run deadline exceeded during retry backoff"

    @pytest.mark.asyncio
    async def test_clipped_timeout_reported_as_deadline(self, checker):
        deadline = time.monotonic() + 0.5

        with patch.object(checker, '_make_request', new_callable=AsyncMock, side_effect=asyncio.TimeoutError()):
            result = await checker.check("example.com", deadline=deadline)

        assert result.error_type == ErrorType.RUN_DEADLINE_EXCEEDED.value
        assert result.error_message == "Run deadline exceeded during request"
        assert result.attempts == 1


async def _ok(request):
    request.app['user_agents'].append(request.headers.get('User-Agent'))
    return web.Response(text="hello world")


async def _redirect(request):
    raise web.HTTPFound('/ok')


async def _loop(request):
    raise web.HTTPFound('/loop')


async def _unavailable(request):
    return web.Response(status=503)


@pytest.fixture
def app():
    application = web.Application()
    application['user_agents'] = []
    application.router.add_get('/ok', _ok)
    application.router.add_get('/redirect', _redirect)
    application.router.add_get('/loop', _loop)
    application.router.add_get('/unavailable', _unavailable)
    return application


class TestLiveRequests:
    """Tests that issue real requests to a local server."""

    @pytest.mark.asyncio
    async def test_get_and_drain(self, app):
        async with test_utils.TestServer(app) as server:
            async with DomainChecker(retry_policy=FAST_RETRY, user_agent="Probe/2.0") as checker:
                result = await checker.check(str(server.make_url('/ok')))

        assert result.status == STATUS_UP
        assert result.status_code == 200
        assert result.content_length == len("hello world")
        assert not result.is_ssl
        assert app['user_agents'] == ["Probe/2.0"]

    @pytest.mark.asyncio
    async def test_follows_redirects(self, app):
        async with test_utils.TestServer(app) as server:
            async with DomainChecker(retry_policy=FAST_RETRY) as checker:
                result = await checker.check(str(server.make_url('/redirect')))

        assert result.status == STATUS_UP
        assert result.status_code == 200

    @pytest.mark.asyncio
    async def test_redirect_loop_hits_limit(self, app):
        async with test_utils.TestServer(app) as server:
            async with DomainChecker(retry_policy=FAST_RETRY, max_redirects=3) as checker:
                result = await checker.check(str(server.make_url('/loop')))

        assert result.status == STATUS_DOWN
        assert result.error_type == ErrorType.REDIRECT_LIMIT.value
        assert result.attempts == 1

    @pytest.mark.asyncio
    async def test_server_error_retried(self, app):
        async with test_utils.TestServer(app) as server:
            async with DomainChecker(retry_policy=FAST_RETRY) as checker:
                result = await checker.check(str(server.make_url('/unavailable')))

        assert result.status == STATUS_DOWN
        assert result.status_code == 503
        assert result.attempts == FAST_RETRY.max_attempts

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        async with DomainChecker(retry_policy=RetryPolicy(max_retries=0)) as checker:
            result = await checker.check("http://127.0.0.1:1/")

        assert result.status == STATUS_DOWN
        assert result.status_code == 0
        assert result.error_type == ErrorType.TRANSPORT.value
        assert result.error_message.startswith("Request failed:")
