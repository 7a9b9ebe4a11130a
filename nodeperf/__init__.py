"""nodeperf — latency and throughput ranking for local SOCKS5 proxy nodes."""

__version__ = "0.1.0"
