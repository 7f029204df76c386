"""
Resilience Infrastructure for Seaside Beacon

Retry logic with exponential backoff for upstream weather providers.
Conservative strategy: 2 retries max, 1-5 second delays.

Features:
- classify_failure() turns any exception into a FailureVerdict
- retry_with_backoff() is provider-agnostic and consumes that verdict
- Jitter to prevent thundering herd
- Auth failures abort immediately without burning the remaining attempts
"""

import asyncio
import json
import logging
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import httpx

from seaside_beacon.errors import (
    AuthError,
    MalformedResponseError,
    TransientUpstreamError,
    UpstreamError,
)

logger = logging.getLogger(__name__)


class ErrorType(Enum):
    """Categories of errors for logging."""
    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    AUTH = "auth"
    API_ERROR = "api_error"
    PARSE_ERROR = "parse_error"
    UNKNOWN = "unknown"


@dataclass
class RetryConfig:
    """Configuration for retry behavior - Conservative defaults."""
    max_retries: int = 2  # 2 retries = 3 total attempts
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 5.0
    exponential_base: float = 2.0
    jitter: bool = True  # Add randomness to prevent thundering herd

    # Credential problems: retrying cannot succeed
    auth_status_codes: tuple = (401, 403)

    # HTTP status codes that SHOULD trigger retry (plus any 5xx)
    retryable_status_codes: tuple = (408, 429, 500, 502, 503, 504)


DEFAULT_RETRY_CONFIG = RetryConfig()


@dataclass(frozen=True)
class FailureVerdict:
    """
    How the retry loop should treat one failed attempt.

    retryable: another attempt may succeed
    fatal:     abort the attempt chain now (auth-class)
    Neither set means "give up, but this is not a credential problem".
    """
    retryable: bool
    fatal: bool
    error_type: ErrorType
    message: str
    status_code: Optional[int] = None


def classify_failure(exception: BaseException, config: RetryConfig = DEFAULT_RETRY_CONFIG) -> FailureVerdict:
    """
    Classify an exception raised by a provider call.

    Args:
        exception: The caught exception
        config: Retry configuration (status code tables)

    Returns:
        FailureVerdict for the retry loop
    """
    error_msg = str(exception)[:200]  # Truncate long messages

    if isinstance(exception, AuthError):
        return FailureVerdict(False, True, ErrorType.AUTH, error_msg, exception.status_code)

    if isinstance(exception, TransientUpstreamError):
        return FailureVerdict(True, False, ErrorType.API_ERROR, error_msg, exception.status_code)

    if isinstance(exception, MalformedResponseError):
        # Same bad payload will come back
        return FailureVerdict(False, False, ErrorType.PARSE_ERROR, f"Parse error: {error_msg}")

    if isinstance(exception, httpx.TimeoutException):
        return FailureVerdict(True, False, ErrorType.TIMEOUT, f"Timeout: {error_msg}")

    if isinstance(exception, httpx.HTTPStatusError):
        status = exception.response.status_code
        if status in config.auth_status_codes:
            return FailureVerdict(False, True, ErrorType.AUTH, f"HTTP {status}: credentials rejected", status)
        if status == 429:
            return FailureVerdict(True, False, ErrorType.RATE_LIMIT, "HTTP 429 Too Many Requests", status)
        if status == 503:
            return FailureVerdict(True, False, ErrorType.RATE_LIMIT, "HTTP 503 Service Unavailable (quota?)", status)
        if status in config.retryable_status_codes or status >= 500:
            return FailureVerdict(True, False, ErrorType.API_ERROR, f"HTTP {status}: {error_msg}", status)
        return FailureVerdict(False, False, ErrorType.API_ERROR, f"HTTP {status}: {error_msg}", status)

    if isinstance(exception, httpx.RequestError):
        # Connection refused, DNS, reset
        return FailureVerdict(True, False, ErrorType.API_ERROR, f"Request error: {error_msg}")

    if isinstance(exception, (json.JSONDecodeError, KeyError, ValueError, TypeError)):
        return FailureVerdict(False, False, ErrorType.PARSE_ERROR, f"Parse error: {error_msg}")

    return FailureVerdict(False, False, ErrorType.UNKNOWN, error_msg)


def calculate_backoff_delay(attempt: int, config: RetryConfig) -> float:
    """
    Calculate delay with exponential backoff and optional jitter.

    Args:
        attempt: The retry attempt number (0-indexed)
        config: Retry configuration

    Returns:
        Delay in seconds
    """
    delay = min(
        config.base_delay_seconds * (config.exponential_base ** attempt),
        config.max_delay_seconds
    )

    if config.jitter:
        # Add up to 25% jitter
        jitter_amount = delay * 0.25 * random.random()
        delay += jitter_amount

    return delay


def _as_upstream_error(provider_name: str, exception: BaseException, verdict: FailureVerdict) -> Exception:
    if isinstance(exception, (UpstreamError, MalformedResponseError)):
        return exception
    if verdict.fatal:
        return AuthError(provider_name, verdict.message, verdict.status_code)
    if verdict.error_type == ErrorType.PARSE_ERROR:
        return MalformedResponseError(f"[{provider_name}] {verdict.message}")
    return TransientUpstreamError(provider_name, verdict.message, verdict.status_code)


async def retry_with_backoff(
    func: Callable[[], Awaitable[Any]],
    provider_name: str = "unknown",
    config: Optional[RetryConfig] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Any:
    """
    Call func until it succeeds, the verdict says stop, or attempts run out.

    Args:
        func: Zero-arg coroutine function performing one attempt
        provider_name: Name for logging
        config: Retry configuration (DEFAULT_RETRY_CONFIG if None)
        sleep: Awaitable sleep, injectable for tests

    Returns:
        Result of func

    Raises:
        AuthError, TransientUpstreamError or MalformedResponseError describing
        the last failure
    """
    if config is None:
        config = DEFAULT_RETRY_CONFIG

    last_exception: Optional[BaseException] = None
    last_verdict: Optional[FailureVerdict] = None
    start_time = time.time()

    for attempt in range(config.max_retries + 1):
        if attempt > 0:
            delay = calculate_backoff_delay(attempt - 1, config)
            logger.info(
                f"[{provider_name}] Retry {attempt}/{config.max_retries} "
                f"after {delay:.1f}s delay"
            )
            await sleep(delay)

        try:
            result = await func()
        except Exception as e:
            last_exception = e
            last_verdict = classify_failure(e, config)

            logger.warning(
                f"[{provider_name}] Attempt {attempt + 1} failed: "
                f"{last_verdict.error_type.value} - {last_verdict.message}"
            )

            if last_verdict.fatal:
                logger.error(f"[{provider_name}] Fatal error ({last_verdict.error_type.value}), aborting retries")
                break
            if not last_verdict.retryable:
                logger.error(f"[{provider_name}] Error not retryable, giving up")
                break
            continue

        if attempt > 0:
            logger.info(
                f"[{provider_name}] Succeeded on attempt {attempt + 1} "
                f"({time.time() - start_time:.2f}s total)"
            )
        return result

    elapsed = time.time() - start_time
    logger.error(
        f"[{provider_name}] Giving up after {elapsed:.2f}s. "
        f"Last error: {last_verdict.error_type.value if last_verdict else 'unknown'}"
    )
    error = _as_upstream_error(provider_name, last_exception, last_verdict)
    if error is last_exception:
        raise error
    raise error from last_exception
