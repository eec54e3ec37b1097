import httpx
import pytest

from app.providers.http_client import ResilientClient, _parse_retry_after, _safe_url


def _client_with(handler, **kwargs) -> ResilientClient:
    client = ResilientClient("test", **kwargs)
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client


def test_safe_url_drops_query():
    assert _safe_url("https://espn.test/nfl/scoreboard?week=3") == "https://espn.test/nfl/scoreboard"


def test_parse_retry_after():
    assert _parse_retry_after(httpx.Response(429, headers={"Retry-After": "7"})) == 7.0
    assert _parse_retry_after(httpx.Response(429, headers={"Retry-After": "soon"})) is None
    assert _parse_retry_after(httpx.Response(429)) is None


@pytest.mark.asyncio
async def test_single_attempt_by_default():
    calls = []

    def handler(request):
        calls.append(request.url.params.get("week"))
        return httpx.Response(503)

    client = _client_with(handler)
    resp = await client.get("https://espn.test/scoreboard", params={"week": 2})

    assert resp.status_code == 503
    assert calls == ["2"]
    await client.aclose()


@pytest.mark.asyncio
async def test_retries_transient_status_when_enabled():
    statuses = iter([502, 200])

    def handler(request):
        return httpx.Response(next(statuses), json={"events": []})

    client = _client_with(handler, max_retries=2, base_delay=0)
    resp = await client.get("https://espn.test/scoreboard")

    assert resp.status_code == 200
    await client.aclose()


@pytest.mark.asyncio
async def test_network_error_is_raised_after_last_attempt():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    client = _client_with(handler, max_retries=1, base_delay=0)

    with pytest.raises(httpx.ConnectError):
        await client.get("https://espn.test/scoreboard")
    await client.aclose()
