"""Reduce raw probe outcomes to latency and throughput classifications."""

from __future__ import annotations

from typing import Sequence

from nodeperf.config import MIN_VALID_SAMPLES
from nodeperf.models import (
    AttemptOutcome,
    LatencyAllFailed,
    LatencyResult,
    LatencySuccess,
    LatencyUnstable,
    SpeedFailed,
    SpeedResult,
    SpeedSuccess,
    TransferOutcome,
)


def reduce_latency(outcomes: Sequence[AttemptOutcome]) -> LatencyResult:
    """Classify a sequence of latency attempts.

    Failed attempts are discarded for statistics.  Fewer than
    ``MIN_VALID_SAMPLES`` successes is reported as unstable, with
    ``total_count`` being the number of attempts actually made.
    """
    valid = [o.duration_ms for o in outcomes if o.ok]
    if not valid:
        return LatencyAllFailed()

    if len(valid) < MIN_VALID_SAMPLES:
        return LatencyUnstable(valid_count=len(valid), total_count=len(outcomes))

    sorted_vals = sorted(valid)
    n = len(sorted_vals)
    return LatencySuccess(
        median=_middle_element(sorted_vals),
        average=sum(sorted_vals) / n,
        minimum=sorted_vals[0],
        maximum=sorted_vals[-1],
    )


def _middle_element(sorted_vals: list[float]) -> float:
    """Element at index n // 2; no interpolation for even counts."""
    return sorted_vals[len(sorted_vals) // 2]


def compute_rate_mbps(bytes_received: int, elapsed_s: float) -> float:
    """Decimal megabits per second."""
    megabits = (bytes_received * 8) / 1_000_000
    return megabits / elapsed_s


def reduce_throughput(outcome: TransferOutcome) -> SpeedResult:
    """Collapse a transfer outcome into a speed result. No retry."""
    if outcome.error is not None:
        return SpeedFailed(outcome.error)
    if outcome.elapsed_s <= 0:
        return SpeedFailed("no elapsed time")
    return SpeedSuccess(compute_rate_mbps(outcome.bytes_received, outcome.elapsed_s))
