"""Ordering of node results for presentation."""

from __future__ import annotations

import math
from functools import cmp_to_key
from typing import Iterable, Optional

from nodeperf.models import LatencyResult, LatencySuccess, NodeResult, SpeedResult, SpeedSuccess


def _cmp_float(a: float, b: float) -> int:
    """Three-way compare; NaN compares equal to everything."""
    if math.isnan(a) or math.isnan(b):
        return 0
    return (a > b) - (a < b)


def _cmp_latency(a: LatencyResult, b: LatencyResult) -> int:
    a_ok = isinstance(a, LatencySuccess)
    b_ok = isinstance(b, LatencySuccess)
    if a_ok and b_ok:
        return _cmp_float(a.median, b.median)
    if a_ok:
        return -1
    if b_ok:
        return 1
    return 0


def _cmp_speed(a: Optional[SpeedResult], b: Optional[SpeedResult]) -> int:
    a_ok = isinstance(a, SpeedSuccess)
    b_ok = isinstance(b, SpeedSuccess)
    if a_ok and b_ok:
        # Faster first
        return _cmp_float(b.rate_mbps, a.rate_mbps)
    if a_ok:
        return -1
    if b_ok:
        return 1
    return 0


def compare_by_speed(a: NodeResult, b: NodeResult) -> int:
    """Successful throughput first (fastest first).

    Latency only orders nodes that both lack a successful throughput.
    """
    if isinstance(a.speed, SpeedSuccess) or isinstance(b.speed, SpeedSuccess):
        return _cmp_speed(a.speed, b.speed)
    return _cmp_latency(a.latency, b.latency)


def compare_by_latency(a: NodeResult, b: NodeResult) -> int:
    """Successful latency first, lowest median first."""
    return _cmp_latency(a.latency, b.latency)


def rank_results(results: Iterable[NodeResult], speed_enabled: bool) -> list[NodeResult]:
    """Return *results* in presentation order.

    The sort is stable: results the comparison treats as equal keep
    their evaluation order.
    """
    compare = compare_by_speed if speed_enabled else compare_by_latency
    return sorted(results, key=cmp_to_key(compare))
