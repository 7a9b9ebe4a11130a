import asyncio

import httpx
import pytest

from nodeperf import sampler
from nodeperf.config import DOWNLOAD_URL, LATENCY_URL
from nodeperf.exceptions import SessionError
from nodeperf.models import TransferOutcome


@pytest.fixture
def fake_network(monkeypatch):
    """Route sampler clients through a MockTransport driven by *handler*."""
    state = {"handler": None, "requests": [], "clients": 0}

    def handler(request):
        state["requests"].append(request)
        return state["handler"](request)

    def build_client(port, connect_timeout, request_timeout):
        state["clients"] += 1
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    monkeypatch.setattr(sampler, "_build_client", build_client)
    return state


def scripted(responses):
    """Handler that plays back *responses* in order; exceptions are raised."""
    queue = list(responses)

    def handler(request):
        item = queue.pop(0)
        if isinstance(item, type) and issubclass(item, Exception):
            raise item("scripted failure", request=request)
        return httpx.Response(item)

    return handler


@pytest.mark.asyncio
async def test_probe_latency_warms_up_then_runs_full_budget(fake_network):
    fake_network["handler"] = lambda request: httpx.Response(200)

    outcomes = await sampler.probe_latency(1080, 10)

    assert len(outcomes) == 10
    assert all(o.ok and o.duration_ms >= 0 for o in outcomes)
    # one warm-up plus ten timed attempts, all HEAD against the trace endpoint
    assert len(fake_network["requests"]) == 11
    assert {r.method for r in fake_network["requests"]} == {"HEAD"}
    assert {str(r.url) for r in fake_network["requests"]} == {LATENCY_URL}


@pytest.mark.asyncio
async def test_probe_latency_discards_failed_warm_up(fake_network):
    fake_network["handler"] = scripted([httpx.ConnectError, 200, 200, 200])

    outcomes = await sampler.probe_latency(1080, 3)

    assert [o.ok for o in outcomes] == [True, True, True]


@pytest.mark.asyncio
async def test_probe_latency_stops_at_first_bad_status(fake_network):
    fake_network["handler"] = scripted([200, 200, 200, 200, 502])

    outcomes = await sampler.probe_latency(1080, 10)

    assert len(outcomes) == 4
    assert [o.ok for o in outcomes] == [True, True, True, False]
    assert outcomes[-1].failure == "status"
    assert "502" in outcomes[-1].detail
    assert len(fake_network["requests"]) == 5


@pytest.mark.asyncio
async def test_probe_latency_stops_at_timeout(fake_network):
    fake_network["handler"] = scripted([200, 200, httpx.ReadTimeout])

    outcomes = await sampler.probe_latency(1080, 10)

    assert len(outcomes) == 2
    assert outcomes[-1].failure == "timeout"


@pytest.mark.asyncio
async def test_probe_latency_stops_at_transport_error(fake_network):
    fake_network["handler"] = scripted([200, httpx.ProxyError])

    outcomes = await sampler.probe_latency(1080, 10)

    assert len(outcomes) == 1
    assert outcomes[0].failure == "transport"


@pytest.mark.asyncio
async def test_probe_latency_reports_each_attempt(fake_network):
    fake_network["handler"] = scripted([200, 200, 200, 404])
    seen = []

    await sampler.probe_latency(1080, 5, on_attempt=lambda n, o: seen.append((n, o.ok)))

    assert seen == [(1, True), (2, True), (3, False)]


@pytest.mark.asyncio
async def test_probe_latency_rejects_zero_attempts():
    with pytest.raises(ValueError):
        await sampler.probe_latency(1080, 0)


@pytest.mark.asyncio
async def test_probe_latency_session_error_on_bad_proxy_url(monkeypatch):
    monkeypatch.setattr(sampler, "PROXY_URL_TEMPLATE", "ftp://127.0.0.1:{port}")

    with pytest.raises(SessionError):
        await sampler.probe_latency(1080, 3)


@pytest.mark.asyncio
async def test_probe_throughput_requests_exact_byte_count(fake_network):
    def handler(request):
        size = int(request.url.params["bytes"])
        return httpx.Response(200, content=b"\0" * size)

    fake_network["handler"] = handler

    outcome = await sampler.probe_throughput(1080, 2)

    assert outcome.error is None
    assert outcome.bytes_received == 2 * 1024 * 1024
    assert outcome.elapsed_s > 0
    request = fake_network["requests"][0]
    assert request.method == "GET"
    assert str(request.url).startswith(DOWNLOAD_URL)
    assert request.url.params["bytes"] == str(2 * 1024 * 1024)


@pytest.mark.asyncio
async def test_probe_throughput_oversized_makes_no_call(fake_network):
    outcome = await sampler.probe_throughput(1080, 2000)

    assert outcome == TransferOutcome(error="size too large")
    assert fake_network["clients"] == 0
    assert fake_network["requests"] == []


@pytest.mark.asyncio
async def test_probe_throughput_accepts_upper_limit(fake_network):
    fake_network["handler"] = lambda request: httpx.Response(200, content=b"x")

    outcome = await sampler.probe_throughput(1080, 1024)

    assert outcome.error is None
    assert fake_network["requests"][0].url.params["bytes"] == str(1024 * 1024 * 1024)


@pytest.mark.asyncio
async def test_probe_throughput_http_error(fake_network):
    fake_network["handler"] = lambda request: httpx.Response(503)

    outcome = await sampler.probe_throughput(1080, 1)

    assert outcome.error.startswith("HTTP Error: 503")


@pytest.mark.asyncio
async def test_probe_throughput_request_error(fake_network):
    fake_network["handler"] = scripted([httpx.ConnectError])

    outcome = await sampler.probe_throughput(1080, 1)

    assert outcome.error.startswith("Request error")


@pytest.mark.asyncio
async def test_probe_throughput_timeout(fake_network):
    fake_network["handler"] = scripted([httpx.ConnectTimeout])

    outcome = await sampler.probe_throughput(1080, 1)

    assert outcome.error == "Timeout"


class _TrickleStream(httpx.AsyncByteStream):
    """Body delivered in small chunks, each well inside any per-read timeout."""

    def __init__(self, chunks, delay):
        self.chunks = chunks
        self.delay = delay

    async def __aiter__(self):
        for _ in range(self.chunks):
            await asyncio.sleep(self.delay)
            yield b"x" * 10


@pytest.mark.asyncio
async def test_probe_throughput_request_timeout_bounds_whole_transfer(fake_network, monkeypatch):
    monkeypatch.setattr(sampler, "DOWNLOAD_REQUEST_TIMEOUT", 0.2)
    monkeypatch.setattr(sampler, "DOWNLOAD_DEADLINE", 5.0)
    fake_network["handler"] = lambda request: httpx.Response(200, stream=_TrickleStream(10, 0.05))

    outcome = await sampler.probe_throughput(1080, 1)

    assert outcome == TransferOutcome(error="Timeout")


@pytest.mark.asyncio
async def test_probe_throughput_within_request_timeout_succeeds(fake_network, monkeypatch):
    monkeypatch.setattr(sampler, "DOWNLOAD_REQUEST_TIMEOUT", 5.0)
    fake_network["handler"] = lambda request: httpx.Response(200, stream=_TrickleStream(3, 0.01))

    outcome = await sampler.probe_throughput(1080, 1)

    assert outcome.error is None
    assert outcome.bytes_received == 30


@pytest.mark.asyncio
async def test_probe_throughput_deadline_expires(fake_network, monkeypatch):
    monkeypatch.setattr(sampler, "DOWNLOAD_DEADLINE", 0.05)

    async def stalled(request):
        await asyncio.sleep(1)
        return httpx.Response(200, content=b"x")

    fake_network["handler"] = stalled

    outcome = await sampler.probe_throughput(1080, 1)

    assert outcome == TransferOutcome(error="Timeout")


@pytest.mark.asyncio
async def test_probe_latency_attempt_timeout_stops_sampling(fake_network, monkeypatch):
    monkeypatch.setattr(sampler, "LATENCY_REQUEST_TIMEOUT", 0.05)
    calls = {"n": 0}

    async def stalls_on_fourth(request):
        calls["n"] += 1
        if calls["n"] == 4:
            await asyncio.sleep(1)
        return httpx.Response(200)

    fake_network["handler"] = stalls_on_fourth

    outcomes = await sampler.probe_latency(1080, 10)

    # warm-up and two timed attempts succeed, the third stalls
    assert [o.ok for o in outcomes] == [True, True, False]
    assert outcomes[-1].failure == "timeout"
    assert outcomes[-1].detail == "Timeout"
    assert calls["n"] == 4


class _BrokenStream(httpx.AsyncByteStream):
    async def __aiter__(self):
        yield b"partial"
        raise httpx.ReadError("connection reset")


@pytest.mark.asyncio
async def test_probe_throughput_read_error(fake_network):
    fake_network["handler"] = lambda request: httpx.Response(200, stream=_BrokenStream())

    outcome = await sampler.probe_throughput(1080, 1)

    assert outcome.error.startswith("Failed to read response")


@pytest.mark.asyncio
async def test_probe_throughput_session_error_is_failure(monkeypatch):
    monkeypatch.setattr(sampler, "PROXY_URL_TEMPLATE", "ftp://127.0.0.1:{port}")

    outcome = await sampler.probe_throughput(1080, 1)

    assert outcome.error.startswith("Failed to create client")
