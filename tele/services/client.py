"""Resilient HTTP client shared by every remote service.

One retry/backoff state machine parameterized per service: send, classify
the status, then either hand the response back, wait and retry, or fail.
Rate-limited (429) and transiently failing (500/502/503/504) responses are
retried up to ``max_retries`` times, waiting the server's ``Retry-After``
when present and ``2 ** attempt`` seconds otherwise, capped by a ceiling.
Transport failures (DNS, connect, reset, timeout) share the same budget.
Any other non-2xx status is fatal and never retried.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

from tele.exceptions.service_errors import (
    BadServerResponseError,
    NetworkError,
    ServiceOverloadedError,
)

if TYPE_CHECKING:
    from tele.logging.diagnostics import DiagnosticSink

logger = logging.getLogger(__name__)

RATE_LIMITED_STATUSES: frozenset[int] = frozenset({429})
TRANSIENT_STATUSES: frozenset[int] = frozenset({500, 502, 503, 504})
OVERLOAD_STATUSES: frozenset[int] = frozenset({429, 503})
_BODY_PREVIEW_LENGTH: int = 300

SleepFunc = Callable[[float], Awaitable[None]]


class ResponseClass(StrEnum):
    """Outcome category of a single HTTP attempt."""

    SUCCESS = "success"
    RATE_LIMITED = "rate_limited"
    SERVER_TRANSIENT = "server_transient"
    FATAL = "fatal"


class RetryPolicy(BaseModel):
    """Retry budget and backoff bounds for one service."""

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=3, ge=0)
    backoff_ceiling_seconds: float = Field(default=30.0, gt=0.0)

    @property
    def max_attempts(self) -> int:
        """Return the total number of attempts including the first."""
        return self.max_retries + 1


def classify_status(status_code: int) -> ResponseClass:
    """Map an HTTP status code to its retry category."""
    if 200 <= status_code < 300:
        return ResponseClass.SUCCESS
    if status_code in RATE_LIMITED_STATUSES:
        return ResponseClass.RATE_LIMITED
    if status_code in TRANSIENT_STATUSES:
        return ResponseClass.SERVER_TRANSIENT
    return ResponseClass.FATAL


def parse_retry_after(value: str | None) -> float | None:
    """Parse a ``Retry-After`` header as seconds.

    Accepts delta-seconds or an HTTP date. Unparseable values yield None so
    the caller falls back to exponential backoff.
    """
    if value is None or not value.strip():
        return None
    try:
        return max(0.0, float(value.strip()))
    except ValueError:
        pass
    try:
        retry_at = parsedate_to_datetime(value.strip())
    except (TypeError, ValueError):
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=UTC)
    return max(0.0, (retry_at - datetime.now(UTC)).total_seconds())


def backoff_delay(attempt: int, retry_after: float | None, ceiling: float) -> float:
    """Return the wait before the retry following zero-based ``attempt``.

    Args:
        attempt: Index of the attempt that just failed.
        retry_after: Server-provided delay in seconds, if any.
        ceiling: Upper bound on the returned delay.
    """
    delay = retry_after if retry_after is not None else float(2**attempt)
    return min(delay, ceiling)


class ResilientClient:
    """Wraps an ``httpx.AsyncClient`` with the shared retry policy.

    Request construction and response decoding stay with the service
    clients; this class only owns sending, classification and waiting.
    """

    def __init__(
        self,
        service_name: str,
        http_client: httpx.AsyncClient,
        *,
        policy: RetryPolicy | None = None,
        diagnostics: DiagnosticSink | None = None,
        sleep: SleepFunc = asyncio.sleep,
        attempt_timeout_seconds: float | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            service_name: Name used in logs, diagnostics and errors.
            http_client: Transport. Its timeouts bound each network phase.
            policy: Retry budget. Defaults to three retries, 30 s ceiling.
            diagnostics: Optional sink for per-attempt diagnostic lines.
            sleep: Awaitable used to wait between attempts.
            attempt_timeout_seconds: Upper bound on one whole attempt, from
                sending the request to reading the last body byte. None
                means no overall bound.
        """
        self._service_name = service_name
        self._http = http_client
        self._policy = policy or RetryPolicy()
        self._diagnostics = diagnostics
        self._sleep = sleep
        self._attempt_timeout = attempt_timeout_seconds

    @property
    def service_name(self) -> str:
        """Return the service name."""
        return self._service_name

    @property
    def policy(self) -> RetryPolicy:
        """Return the retry policy."""
        return self._policy

    async def aclose(self) -> None:
        """Close the underlying transport."""
        await self._http.aclose()

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        """POST with retries and return the first successful response.

        Args:
            url: Absolute or base-relative URL.
            **kwargs: Passed to ``httpx.AsyncClient.post`` on every attempt.

        Returns:
            A 2xx response.

        Raises:
            BadServerResponseError: On a non-retryable status.
            ServiceOverloadedError: When retryable statuses exhaust the budget.
            NetworkError: When transport failures exhaust the budget.
        """
        max_attempts = self._policy.max_attempts
        last_status: int | None = None
        last_transport_error: httpx.TransportError | None = None

        for attempt in range(max_attempts):
            started = time.perf_counter()
            try:
                response = await self._send(url, kwargs)
            except httpx.TransportError as error:
                elapsed_ms = (time.perf_counter() - started) * 1000
                last_transport_error = error
                last_status = None
                self._log_attempt(
                    attempt,
                    elapsed_ms,
                    status_code=None,
                    outcome=f"transport error {type(error).__name__}: {error}",
                    level=logging.WARNING,
                )
                if attempt + 1 < max_attempts:
                    await self._wait(attempt, None)
                continue

            elapsed_ms = (time.perf_counter() - started) * 1000
            response_class = classify_status(response.status_code)

            if response_class == ResponseClass.SUCCESS:
                self._log_attempt(
                    attempt,
                    elapsed_ms,
                    status_code=response.status_code,
                    outcome="success",
                    level=logging.INFO,
                )
                return response

            if response_class == ResponseClass.FATAL:
                body = response.text[:_BODY_PREVIEW_LENGTH]
                self._log_attempt(
                    attempt,
                    elapsed_ms,
                    status_code=response.status_code,
                    outcome=f"fatal, body={body}",
                    level=logging.ERROR,
                )
                raise BadServerResponseError(
                    f"{self._service_name} returned HTTP {response.status_code}",
                    status_code=response.status_code,
                    service_name=self._service_name,
                )

            last_status = response.status_code
            last_transport_error = None
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            self._log_attempt(
                attempt,
                elapsed_ms,
                status_code=response.status_code,
                outcome=str(response_class),
                level=logging.WARNING,
            )
            if attempt + 1 < max_attempts:
                await self._wait(attempt, retry_after)

        if last_transport_error is not None:
            raise NetworkError(
                f"{self._service_name} unreachable after {max_attempts} attempts: "
                f"{last_transport_error}",
                service_name=self._service_name,
                context={"attempts": max_attempts},
            ) from last_transport_error

        raise ServiceOverloadedError(
            f"{self._service_name} overloaded (HTTP {last_status}) after {max_attempts} attempts",
            service_name=self._service_name,
            status_code=last_status,
            attempts=max_attempts,
        )

    async def _send(self, url: str, kwargs: dict[str, Any]) -> httpx.Response:
        try:
            async with asyncio.timeout(self._attempt_timeout):
                return await self._http.post(url, **kwargs)
        except TimeoutError as error:
            raise httpx.TimeoutException(
                f"no complete response within {self._attempt_timeout:g}s",
            ) from error

    async def _wait(self, attempt: int, retry_after: float | None) -> None:
        delay = backoff_delay(attempt, retry_after, self._policy.backoff_ceiling_seconds)
        logger.info(
            "Retrying %s in %.1fs",
            self._service_name,
            delay,
            extra={"service": self._service_name, "attempt": attempt + 1, "delay_s": delay},
        )
        await self._sleep(delay)

    def _log_attempt(
        self,
        attempt: int,
        elapsed_ms: float,
        *,
        status_code: int | None,
        outcome: str,
        level: int,
    ) -> None:
        message = (
            f"attempt {attempt + 1}/{self._policy.max_attempts} "
            f"status={status_code if status_code is not None else '-'} "
            f"elapsed_ms={elapsed_ms:.0f} {outcome}"
        )
        logger.log(
            level,
            "%s %s",
            self._service_name,
            message,
            extra={
                "service": self._service_name,
                "attempt": attempt + 1,
                "elapsed_ms": round(elapsed_ms, 1),
                "status_code": status_code,
            },
        )
        if self._diagnostics is not None:
            self._diagnostics.record(self._service_name, message)
