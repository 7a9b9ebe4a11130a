"""Timed HTTP probes routed through a local SOCKS5 proxy.

Every request goes through ``socks5h://127.0.0.1:<port>`` so that name
resolution happens on the proxy side.  Timings use time.perf_counter()
for monotonic, high-resolution measurements.

Public API:
    probe_latency     -- warm-up plus up to N timed HEAD requests
    probe_throughput  -- one timed GET of a fixed number of bytes
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

import httpx

from nodeperf.config import (
    DOWNLOAD_CONNECT_TIMEOUT,
    DOWNLOAD_DEADLINE,
    DOWNLOAD_REQUEST_TIMEOUT,
    DOWNLOAD_URL,
    LATENCY_CONNECT_TIMEOUT,
    LATENCY_REQUEST_TIMEOUT,
    LATENCY_URL,
    MAX_DOWNLOAD_MB,
    PROXY_URL_TEMPLATE,
    USER_AGENT,
)
from nodeperf.exceptions import SessionError
from nodeperf.models import AttemptOutcome, TransferOutcome

logger = logging.getLogger(__name__)

# Signature: (attempt_number, outcome), attempt_number is 1-based
AttemptCallback = Callable[[int, AttemptOutcome], None]


# ---------------------------------------------------------------------------
# Client construction
# ---------------------------------------------------------------------------

def _build_client(port: int, connect_timeout: float, request_timeout: float) -> httpx.AsyncClient:
    """Create an AsyncClient routed through the SOCKS5 proxy on *port*.

    Raises
    ------
    SessionError
        If the proxy URL or the client cannot be constructed.
    """
    proxy_url = PROXY_URL_TEMPLATE.format(port=port)
    try:
        return httpx.AsyncClient(
            proxy=proxy_url,
            timeout=httpx.Timeout(request_timeout, connect=connect_timeout),
            headers={"User-Agent": USER_AGENT},
            trust_env=False,
        )
    except Exception as exc:
        raise SessionError(f"Failed to create client for {proxy_url}: {exc}") from exc


def _describe(exc: Exception) -> str:
    return str(exc) or type(exc).__name__


# ---------------------------------------------------------------------------
# Latency
# ---------------------------------------------------------------------------

async def _warm_up(client: httpx.AsyncClient) -> None:
    """Absorb connection setup cost. The outcome is discarded."""
    try:
        await asyncio.wait_for(client.head(LATENCY_URL), timeout=LATENCY_REQUEST_TIMEOUT)
    except (asyncio.TimeoutError, httpx.HTTPError) as exc:
        logger.debug("Warm-up request failed: %r", exc)


async def _timed_head(client: httpx.AsyncClient) -> AttemptOutcome:
    t0 = time.perf_counter()
    try:
        response = await asyncio.wait_for(
            client.head(LATENCY_URL),
            timeout=LATENCY_REQUEST_TIMEOUT,
        )
    except (asyncio.TimeoutError, httpx.TimeoutException):
        return AttemptOutcome.failed("timeout", "Timeout")
    except httpx.HTTPError as exc:
        return AttemptOutcome.failed("transport", f"Error ({_describe(exc)})")
    elapsed_us = int((time.perf_counter() - t0) * 1_000_000)

    if not response.is_success:
        return AttemptOutcome.failed("status", f"HTTP Error {response.status_code}")
    return AttemptOutcome.success(elapsed_us / 1000.0)


async def probe_latency(
    port: int,
    attempt_count: int,
    on_attempt: Optional[AttemptCallback] = None,
) -> list[AttemptOutcome]:
    """Sample round-trip latency through the proxy on *port*.

    One untimed warm-up request is sent first, then up to *attempt_count*
    timed ``HEAD`` requests.  Sampling stops at the first failure, which
    is recorded, so the returned list may be shorter than *attempt_count*.

    Raises
    ------
    SessionError
        If the proxy client cannot be constructed.
    """
    if attempt_count < 1:
        raise ValueError(f"attempt_count must be >= 1, got {attempt_count}")

    client = _build_client(port, LATENCY_CONNECT_TIMEOUT, LATENCY_REQUEST_TIMEOUT)
    outcomes: list[AttemptOutcome] = []

    async with client:
        await _warm_up(client)

        for attempt in range(1, attempt_count + 1):
            outcome = await _timed_head(client)
            outcomes.append(outcome)
            if on_attempt:
                on_attempt(attempt, outcome)
            if not outcome.ok:
                logger.debug("Port %d: stopping after attempt %d (%s)", port, attempt, outcome.detail)
                break

    return outcomes


# ---------------------------------------------------------------------------
# Throughput
# ---------------------------------------------------------------------------

async def _transfer(client: httpx.AsyncClient, byte_count: int) -> TransferOutcome:
    """GET *byte_count* bytes and time send + full body read."""
    request = client.build_request("GET", DOWNLOAD_URL, params={"bytes": byte_count})

    t0 = time.perf_counter()
    try:
        response = await client.send(request, stream=True)
    except httpx.TimeoutException:
        return TransferOutcome(error="Timeout")
    except httpx.HTTPError as exc:
        return TransferOutcome(error=f"Request error: {_describe(exc)}")

    try:
        if not response.is_success:
            status = f"{response.status_code} {response.reason_phrase}".strip()
            return TransferOutcome(error=f"HTTP Error: {status}")
        try:
            body = await response.aread()
        except httpx.TimeoutException:
            return TransferOutcome(error="Timeout")
        except httpx.HTTPError as exc:
            return TransferOutcome(error=f"Failed to read response: {_describe(exc)}")
        elapsed_s = time.perf_counter() - t0
    finally:
        await response.aclose()

    return TransferOutcome(bytes_received=len(body), elapsed_s=elapsed_s)


async def _download(client: httpx.AsyncClient, byte_count: int) -> TransferOutcome:
    """Run one transfer under the overall request timeout.

    httpx timeouts apply per network operation; ``DOWNLOAD_REQUEST_TIMEOUT``
    bounds the whole request, from send until the body is fully read.
    """
    try:
        return await asyncio.wait_for(
            _transfer(client, byte_count),
            timeout=DOWNLOAD_REQUEST_TIMEOUT,
        )
    except asyncio.TimeoutError:
        return TransferOutcome(error="Timeout")


async def probe_throughput(port: int, size_mb: int) -> TransferOutcome:
    """Download *size_mb* MiB through the proxy on *port*.

    Sizes above ``MAX_DOWNLOAD_MB`` are rejected without any network call.
    The whole transfer runs under a ``DOWNLOAD_DEADLINE`` second deadline.
    """
    if size_mb < 1:
        raise ValueError(f"size_mb must be >= 1, got {size_mb}")
    if size_mb > MAX_DOWNLOAD_MB:
        return TransferOutcome(error="size too large")

    try:
        client = _build_client(port, DOWNLOAD_CONNECT_TIMEOUT, DOWNLOAD_REQUEST_TIMEOUT)
    except SessionError as exc:
        return TransferOutcome(error=str(exc))

    async with client:
        try:
            return await asyncio.wait_for(
                _download(client, size_mb * 1024 * 1024),
                timeout=DOWNLOAD_DEADLINE,
            )
        except asyncio.TimeoutError:
            return TransferOutcome(error="Timeout")
