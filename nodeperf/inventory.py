"""Proxy endpoint inventory loaded from a sing-box style JSON config."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Iterable, Sequence

from nodeperf.config import LOCAL_LISTEN_ADDRESSES
from nodeperf.exceptions import InventoryError
from nodeperf.models import ProxyEndpoint

logger = logging.getLogger(__name__)


def load_config(path: str | Path) -> dict:
    """Read and decode the JSON config at *path*."""
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except OSError as exc:
        raise InventoryError(f"Cannot read config file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise InventoryError(f"Invalid JSON in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise InventoryError(f"Expected a JSON object at the top of {path}")
    return data


def parse_endpoints(data: dict) -> list[ProxyEndpoint]:
    """Extract local SOCKS inbounds from a decoded config.

    An inbound qualifies when its ``type`` is ``socks``, it has both a
    ``tag`` and a ``listen_port``, and it listens on a loopback address
    (``listen`` defaults to 127.0.0.1).
    """
    inbounds = data.get("inbounds")
    if not isinstance(inbounds, list):
        raise InventoryError("No 'inbounds' list found in config")

    endpoints: list[ProxyEndpoint] = []
    for inbound in inbounds:
        if not isinstance(inbound, dict) or inbound.get("type") != "socks":
            continue
        tag = inbound.get("tag")
        port = inbound.get("listen_port")
        if not isinstance(tag, str) or not isinstance(port, int) or isinstance(port, bool):
            continue
        if not 0 < port <= 65535:
            logger.warning("Skipping inbound %r with invalid port %r", tag, port)
            continue
        listen = inbound.get("listen") or "127.0.0.1"
        if listen not in LOCAL_LISTEN_ADDRESSES:
            logger.debug("Skipping non-local inbound %r on %s", tag, listen)
            continue
        endpoints.append(ProxyEndpoint(tag=tag, port=port))

    return endpoints


def compile_patterns(patterns: Iterable[str]) -> list[re.Pattern[str]]:
    compiled = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern))
        except re.error as exc:
            raise InventoryError(f"Invalid regular expression {pattern!r}: {exc}") from exc
    return compiled


def filter_endpoints(
    endpoints: Sequence[ProxyEndpoint],
    patterns: Sequence[re.Pattern[str]],
) -> list[ProxyEndpoint]:
    """Keep endpoints whose tag matches every pattern. No patterns keeps all."""
    return [e for e in endpoints if all(p.search(e.tag) for p in patterns)]


def load_endpoints(path: str | Path, patterns: Iterable[str] = ()) -> list[ProxyEndpoint]:
    """Load, parse and filter the inventory in one step."""
    compiled = compile_patterns(patterns)
    endpoints = parse_endpoints(load_config(path))
    selected = filter_endpoints(endpoints, compiled)
    logger.debug("%d of %d socks inbounds selected", len(selected), len(endpoints))
    return selected
