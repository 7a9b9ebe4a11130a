"""JSON and CSV export for ranked node results."""

from __future__ import annotations

import csv
import io
import json
from typing import Optional

from nodeperf.models import (
    LatencyAllFailed,
    LatencyResult,
    LatencySessionError,
    LatencySuccess,
    LatencyUnstable,
    NodeResult,
    RunReport,
    SpeedFailed,
    SpeedResult,
    SpeedSuccess,
)

CSV_COLUMNS = [
    "rank",
    "tag",
    "port",
    "latency_status",
    "median_ms",
    "average_ms",
    "min_ms",
    "max_ms",
    "valid_count",
    "total_count",
    "speed_status",
    "rate_mbps",
    "error",
]


def export_json(report: RunReport, indent: int = 2) -> str:
    """Export the ranked results as a JSON string."""
    data = _build_export_dict(report)
    return json.dumps(data, indent=indent, default=str)


def export_csv(report: RunReport) -> str:
    """Export the ranked results as CSV (one row per node)."""
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=CSV_COLUMNS)
    writer.writeheader()

    for rank, result in enumerate(report.results, 1):
        lat = _latency_to_dict(result.latency)
        speed = _speed_to_dict(result.speed)
        errors = [e for e in (lat.get("reason"), speed and speed.get("reason")) if e]
        writer.writerow({
            "rank": rank,
            "tag": result.tag,
            "port": result.port,
            "latency_status": lat["status"],
            "median_ms": lat.get("median_ms", ""),
            "average_ms": lat.get("average_ms", ""),
            "min_ms": lat.get("min_ms", ""),
            "max_ms": lat.get("max_ms", ""),
            "valid_count": lat.get("valid_count", ""),
            "total_count": lat.get("total_count", ""),
            "speed_status": speed["status"] if speed else "",
            "rate_mbps": speed.get("rate_mbps", "") if speed else "",
            "error": "; ".join(errors),
        })

    return output.getvalue()


def write_to_file(content: str, filepath: str) -> None:
    """Write export content to a file."""
    with open(filepath, "w", encoding="utf-8", newline="") as f:
        f.write(content)


def _build_export_dict(report: RunReport) -> dict:
    """Build a serializable dictionary from a RunReport."""
    data: dict = {}

    if report.timestamp:
        data["timestamp"] = report.timestamp
    data["interrupted"] = report.interrupted

    if report.config:
        data["config"] = {
            "config_path": report.config.config_path,
            "tag_patterns": report.config.tag_patterns,
            "latency_attempts": report.config.latency_attempts,
            "download_mb": report.config.download_mb,
        }

    data["results"] = [
        _node_to_dict(rank, r) for rank, r in enumerate(report.results, 1)
    ]
    return data


def _node_to_dict(rank: int, result: NodeResult) -> dict:
    return {
        "rank": rank,
        "tag": result.tag,
        "port": result.port,
        "latency": _latency_to_dict(result.latency),
        "speed": _speed_to_dict(result.speed),
    }


def _latency_to_dict(result: LatencyResult) -> dict:
    if isinstance(result, LatencySuccess):
        return {
            "status": "success",
            "median_ms": result.median,
            "average_ms": result.average,
            "min_ms": result.minimum,
            "max_ms": result.maximum,
        }
    if isinstance(result, LatencyUnstable):
        return {
            "status": "unstable",
            "valid_count": result.valid_count,
            "total_count": result.total_count,
        }
    if isinstance(result, LatencyAllFailed):
        return {"status": "all_failed"}
    if isinstance(result, LatencySessionError):
        return {"status": "session_error", "reason": result.reason}
    raise TypeError(f"Unknown latency result: {result!r}")


def _speed_to_dict(result: Optional[SpeedResult]) -> Optional[dict]:
    if result is None:
        return None
    if isinstance(result, SpeedSuccess):
        return {"status": "success", "rate_mbps": result.rate_mbps}
    if isinstance(result, SpeedFailed):
        return {"status": "failed", "reason": result.reason}
    raise TypeError(f"Unknown speed result: {result!r}")
