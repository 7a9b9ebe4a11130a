"""Exceptions raised by nodeperf."""


class NodePerfError(Exception):
    """Base exception for nodeperf errors."""


class SessionError(NodePerfError):
    """The proxy or HTTP client for a probe could not be constructed."""


class InventoryError(NodePerfError):
    """The proxy inventory could not be loaded or filtered."""
