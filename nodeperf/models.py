"""Data models for nodeperf."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional, Union

from nodeperf.config import LATENCY_ATTEMPTS


@dataclass(frozen=True)
class ProxyEndpoint:
    """A local SOCKS5 inbound fronting one upstream node."""

    tag: str
    port: int


@dataclass(frozen=True)
class AttemptOutcome:
    """Result of a single timed latency attempt.

    Failed attempts carry an infinite duration and a ``failure`` tag of
    ``"transport"``, ``"status"`` or ``"timeout"``.
    """

    duration_ms: float = math.inf
    failure: Optional[str] = None
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.failure is None and not math.isinf(self.duration_ms)

    @classmethod
    def success(cls, duration_ms: float) -> AttemptOutcome:
        return cls(duration_ms=duration_ms)

    @classmethod
    def failed(cls, failure: str, detail: Optional[str] = None) -> AttemptOutcome:
        return cls(failure=failure, detail=detail)


@dataclass(frozen=True)
class TransferOutcome:
    """Raw result of one throughput download."""

    bytes_received: int = 0
    elapsed_s: float = 0.0
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# Latency classification
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LatencySuccess:
    """At least three successful attempts, summarised in milliseconds."""

    median: float
    average: float
    minimum: float
    maximum: float


@dataclass(frozen=True)
class LatencyUnstable:
    """Between one and two successful attempts out of ``total_count`` made."""

    valid_count: int
    total_count: int


@dataclass(frozen=True)
class LatencyAllFailed:
    """No attempt succeeded."""


@dataclass(frozen=True)
class LatencySessionError:
    """The measurement session could not be established."""

    reason: str


LatencyResult = Union[LatencySuccess, LatencyUnstable, LatencyAllFailed, LatencySessionError]


# ---------------------------------------------------------------------------
# Throughput classification
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SpeedSuccess:
    rate_mbps: float


@dataclass(frozen=True)
class SpeedFailed:
    reason: str


SpeedResult = Union[SpeedSuccess, SpeedFailed]


@dataclass(frozen=True)
class NodeResult:
    """Complete measurement result for one node.

    ``speed`` is ``None`` only when throughput testing was not requested.
    """

    tag: str
    port: int
    latency: LatencyResult
    speed: Optional[SpeedResult] = None


@dataclass
class RunConfig:
    """Configuration for a measurement run."""

    config_path: str = ""
    tag_patterns: list[str] = field(default_factory=list)
    latency_attempts: int = LATENCY_ATTEMPTS
    download_mb: Optional[int] = None
    verbose: bool = False
    quiet: bool = False
    json_output: bool = False
    csv_output: bool = False
    output_file: Optional[str] = None

    @property
    def speed_enabled(self) -> bool:
        return self.download_mb is not None


@dataclass
class RunReport:
    """Complete run results, ranked."""

    results: list[NodeResult] = field(default_factory=list)
    config: Optional[RunConfig] = None
    timestamp: Optional[str] = None
    interrupted: bool = False
