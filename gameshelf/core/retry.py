"""Retry utilities with exponential backoff for rate-limited HTTP APIs.

This module wraps outbound httpx calls so that rate-limit (429) and transient
gateway errors (502/503/504) are retried with exponential backoff and jitter,
honoring a server-supplied Retry-After header when one is present. Network
failures are retried with the same backoff and surface as NetworkError once
the retry budget is spent. Other error statuses are returned untouched so the
caller can inspect them.
"""

import asyncio
import logging
import math
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Awaitable, Callable

import httpx

from gameshelf.core.errors import NetworkError

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior. All delays are in milliseconds."""

    max_retries: int = 5  # Retries after the initial attempt
    initial_delay_ms: int = 500  # Base backoff delay
    max_delay_ms: int = 10_000  # Cap for the backoff delay (jitter is added on top)
    jitter_ms: int = 250  # Jitter is drawn from [0, jitter_ms)
    retryable_status_codes: tuple = field(default_factory=lambda: (429, 502, 503, 504))

    @classmethod
    def from_settings(cls, settings) -> "RetryConfig":
        return cls(
            max_retries=settings.retry_max_retries,
            initial_delay_ms=settings.retry_initial_delay_ms,
            max_delay_ms=settings.retry_max_delay_ms,
        )


def backoff_base(attempt: int, config: RetryConfig) -> int:
    """Exponential backoff for an attempt, capped at max_delay_ms."""
    return min(config.max_delay_ms, config.initial_delay_ms * (2 ** attempt))


def calculate_delay(attempt: int, config: RetryConfig) -> int:
    """Calculate delay with exponential backoff and jitter."""
    jitter = random.randrange(config.jitter_ms) if config.jitter_ms > 0 else 0
    return backoff_base(attempt, config) + jitter


def parse_retry_after(value: str | None, now: datetime | None = None) -> int | None:
    """
    Parse a Retry-After header into a delay in milliseconds.

    The header is either a number of seconds or an HTTP-date. Returns None
    when the header is missing or cannot be parsed.
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None

    try:
        seconds = float(text)
    except ValueError:
        seconds = None
    if seconds is not None:
        if not math.isfinite(seconds):
            return None
        return max(0, math.floor(seconds * 1000))

    try:
        retry_at = parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        return None
    if retry_at is None:
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)

    now = now or datetime.now(timezone.utc)
    delta_ms = (retry_at - now).total_seconds() * 1000
    return max(0, math.floor(delta_ms))


async def fetch_with_retry(
    client: httpx.AsyncClient,
    url: str,
    *,
    method: str = "GET",
    config: RetryConfig | None = None,
    sleep: SleepFunc = asyncio.sleep,
    **request_kwargs,
) -> httpx.Response:
    """
    Issue an HTTP request, retrying on rate limits and transient failures.

    Attempt 0 is the first try and up to ``config.max_retries`` further
    attempts are made. When the retry budget runs out on a retryable status,
    that last response is returned as-is.

    Usage:
        response = await fetch_with_retry(client, "/games", params={"search": "Halo"})
    """
    if config is None:
        config = RetryConfig()

    path = httpx.URL(url).path
    attempt = 0

    while True:
        try:
            response = await client.request(method, url, **request_kwargs)
        except httpx.TransportError as e:
            if attempt >= config.max_retries:
                logger.error(
                    f"All {attempt + 1} attempts failed for {method} {path}: "
                    f"{type(e).__name__}: {e}"
                )
                raise NetworkError(f"{type(e).__name__}: {e}") from e

            delay_ms = calculate_delay(attempt, config)
            logger.warning(
                f"Retry {attempt + 1}/{config.max_retries} for {method} {path} "
                f"after {type(e).__name__}: {e}. Waiting {delay_ms}ms"
            )
            await sleep(delay_ms / 1000)
            attempt += 1
            continue

        if response.status_code not in config.retryable_status_codes:
            return response

        if attempt >= config.max_retries:
            logger.warning(
                f"Giving up on {method} {path} after {attempt + 1} attempts "
                f"(HTTP {response.status_code})"
            )
            return response

        retry_after_ms = parse_retry_after(response.headers.get("retry-after"))
        if retry_after_ms is not None:
            delay_ms = retry_after_ms
        else:
            delay_ms = calculate_delay(attempt, config)

        logger.warning(
            f"Retry {attempt + 1}/{config.max_retries} for {method} {path} "
            f"after HTTP {response.status_code}. Waiting {delay_ms}ms"
        )
        await response.aclose()
        await sleep(delay_ms / 1000)
        attempt += 1
