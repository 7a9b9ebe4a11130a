"""Constants and configuration for nodeperf."""

# Probe targets
LATENCY_URL = "https://www.cloudflare.com/cdn-cgi/trace"
DOWNLOAD_URL = "https://speed.cloudflare.com/__down"

# SOCKS5 with proxy-side DNS resolution
PROXY_URL_TEMPLATE = "socks5h://127.0.0.1:{port}"

# Latency probe settings (seconds)
LATENCY_ATTEMPTS = 10
LATENCY_CONNECT_TIMEOUT = 5.0
LATENCY_REQUEST_TIMEOUT = 10.0

# Throughput probe settings (seconds)
DOWNLOAD_CONNECT_TIMEOUT = 10.0
DOWNLOAD_REQUEST_TIMEOUT = 60.0
DOWNLOAD_DEADLINE = 120.0
MAX_DOWNLOAD_MB = 1024

# Fewer successful attempts than this is reported as unstable
MIN_VALID_SAMPLES = 3

# Only inbounds listening on these addresses are probed
LOCAL_LISTEN_ADDRESSES = ("127.0.0.1", "::1", "localhost")

# Latency color thresholds (milliseconds)
FAST_THRESHOLD_MS = 150.0    # Green: <= 150ms
MEDIUM_THRESHOLD_MS = 400.0  # Yellow: <= 400ms
# Red: > 400ms

# Speed color thresholds (Mbps)
FAST_THRESHOLD_MBPS = 50.0
MEDIUM_THRESHOLD_MBPS = 10.0

# User agent for HTTP requests
USER_AGENT = "nodeperf/0.1.0"
