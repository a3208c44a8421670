import httpx
import pytest

from shared.domain.errors import NotFound, RemoteServiceUnavailable
from services.orders.app.infrastructure.resilience import RetryPolicy, call_with_retry, is_transient


def status_error(code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "http://remote/thing")
    return httpx.HTTPStatusError(
        f"{code}", request=request, response=httpx.Response(code, request=request)
    )


class Flaky:
    """Fails with the queued exceptions, then returns 'ok'."""

    def __init__(self, *failures):
        self.failures = list(failures)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return "ok"


class TestRetryPolicy:

    def test_backoff_grows_and_is_capped(self):
        policy = RetryPolicy("remote", initial_backoff=0.5, multiplier=2.0, max_backoff=1.5)
        assert [policy.backoff(n) for n in (1, 2, 3, 4)] == [0.5, 1.0, 1.5, 1.5]

    @pytest.mark.parametrize("code,expected", [
        (429, True), (500, True), (502, True), (503, True), (504, True),
        (400, False), (404, False), (409, False),
    ])
    def test_status_codes(self, code, expected):
        assert is_transient(status_error(code)) is expected

    def test_transport_errors_are_transient(self):
        request = httpx.Request("GET", "http://remote")
        assert is_transient(httpx.ConnectError("refused", request=request))
        assert is_transient(httpx.ReadTimeout("slow", request=request))
        assert not is_transient(ValueError("bad"))


class TestCallWithRetry:

    def test_first_success_does_not_sleep(self):
        sleeps = []
        operation = Flaky()
        assert call_with_retry(operation, RetryPolicy("remote"), sleep=sleeps.append) == "ok"
        assert operation.calls == 1
        assert sleeps == []

    def test_recovers_within_budget(self):
        sleeps = []
        operation = Flaky(status_error(503), status_error(502))

        result = call_with_retry(operation, RetryPolicy("remote", max_attempts=3), sleep=sleeps.append)

        assert result == "ok"
        assert operation.calls == 3
        assert sleeps == [0.5, 1.0]

    def test_exhaustion_raises_remote_unavailable(self):
        operation = Flaky(*[status_error(503)] * 5)

        with pytest.raises(RemoteServiceUnavailable) as exc_info:
            call_with_retry(operation, RetryPolicy("remote", max_attempts=3), sleep=lambda s: None)

        assert operation.calls == 3
        assert exc_info.value.service == "remote"
        assert isinstance(exc_info.value.cause, httpx.HTTPStatusError)

    def test_non_retryable_error_propagates_immediately(self):
        operation = Flaky(NotFound("user", "u2"))

        with pytest.raises(NotFound):
            call_with_retry(operation, RetryPolicy("remote"), sleep=lambda s: None)

        assert operation.calls == 1

    def test_client_error_is_not_retried(self):
        operation = Flaky(status_error(400))

        with pytest.raises(httpx.HTTPStatusError):
            call_with_retry(operation, RetryPolicy("remote"), sleep=lambda s: None)

        assert operation.calls == 1

    def test_fallback_receives_last_error(self):
        seen = []

        def fallback(exc):
            seen.append(exc)
            return "fallback"

        operation = Flaky(*[status_error(500)] * 2)
        result = call_with_retry(
            operation, RetryPolicy("remote", max_attempts=2), fallback=fallback, sleep=lambda s: None
        )

        assert result == "fallback"
        assert seen[0].response.status_code == 500

    def test_custom_predicate(self):
        operation = Flaky(KeyError("x"))
        result = call_with_retry(
            operation, RetryPolicy("remote"),
            is_retryable=lambda exc: isinstance(exc, KeyError), sleep=lambda s: None,
        )
        assert result == "ok"
