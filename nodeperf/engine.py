"""Per-node evaluation for nodeperf.

Each node gets a latency probe and, when a download size was requested,
one throughput probe.  Nodes are evaluated strictly one at a time so that
throughput downloads never compete with each other for bandwidth.

Public API:
    evaluate_node  -- run all probes for a single endpoint
    evaluate_all   -- evaluate endpoints sequentially, in inventory order
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

from nodeperf.exceptions import SessionError
from nodeperf.models import (
    LatencyResult,
    LatencySessionError,
    NodeResult,
    ProxyEndpoint,
    RunConfig,
    SpeedFailed,
)
from nodeperf.sampler import probe_latency, probe_throughput
from nodeperf.stats import reduce_latency, reduce_throughput

logger = logging.getLogger(__name__)

# Type alias for the progress callback.
# Signature: (event, endpoint, payload)
#   "node_start"  payload None
#   "attempt"     payload (attempt_number, AttemptOutcome)
#   "latency"     payload LatencyResult
#   "speed_start" payload download size in MB
#   "speed"       payload SpeedResult
ProgressCallback = Callable[[str, ProxyEndpoint, object], None]

SKIPPED_SESSION_ERROR = "skipped: session error"


async def _measure_latency(
    endpoint: ProxyEndpoint,
    attempts: int,
    progress_callback: Optional[ProgressCallback],
) -> LatencyResult:
    def on_attempt(attempt: int, outcome) -> None:
        if progress_callback:
            progress_callback("attempt", endpoint, (attempt, outcome))

    try:
        outcomes = await probe_latency(endpoint.port, attempts, on_attempt=on_attempt)
    except SessionError as exc:
        logger.debug("Session error for %s: %s", endpoint.tag, exc)
        return LatencySessionError(str(exc))
    return reduce_latency(outcomes)


async def evaluate_node(
    endpoint: ProxyEndpoint,
    config: RunConfig,
    progress_callback: ProgressCallback | None = None,
) -> NodeResult:
    """Run the latency probe and the optional throughput probe for *endpoint*.

    A session error skips the throughput probe; the node then carries a
    failed speed result so that ``speed is None`` keeps meaning "not
    requested".
    """
    if progress_callback:
        progress_callback("node_start", endpoint, None)

    latency = await _measure_latency(endpoint, config.latency_attempts, progress_callback)
    if progress_callback:
        progress_callback("latency", endpoint, latency)

    speed = None
    if config.download_mb is not None:
        if isinstance(latency, LatencySessionError):
            speed = SpeedFailed(SKIPPED_SESSION_ERROR)
        else:
            if progress_callback:
                progress_callback("speed_start", endpoint, config.download_mb)
            outcome = await probe_throughput(endpoint.port, config.download_mb)
            speed = reduce_throughput(outcome)
        if progress_callback:
            progress_callback("speed", endpoint, speed)

    return NodeResult(tag=endpoint.tag, port=endpoint.port, latency=latency, speed=speed)


async def _safe_evaluate(
    endpoint: ProxyEndpoint,
    config: RunConfig,
    progress_callback: ProgressCallback | None,
) -> NodeResult:
    """Wrapper that catches unexpected fatal errors per node."""
    try:
        return await evaluate_node(endpoint, config, progress_callback)
    except Exception as exc:
        logger.exception("Fatal error evaluating %s (port %d)", endpoint.tag, endpoint.port)
        return NodeResult(
            tag=endpoint.tag,
            port=endpoint.port,
            latency=LatencySessionError(f"Fatal evaluation error: {exc}"),
            speed=SpeedFailed(SKIPPED_SESSION_ERROR) if config.download_mb is not None else None,
        )


async def evaluate_all(
    endpoints: Iterable[ProxyEndpoint],
    config: RunConfig,
    results: list[NodeResult] | None = None,
    progress_callback: ProgressCallback | None = None,
) -> list[NodeResult]:
    """Evaluate *endpoints* one at a time, in the given order.

    Each finished result is appended to *results* (a new list if omitted)
    before the next node starts, so an interruption between nodes leaves
    every collected result intact.
    """
    collected = results if results is not None else []
    for endpoint in endpoints:
        collected.append(await _safe_evaluate(endpoint, config, progress_callback))
    return collected
