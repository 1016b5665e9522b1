import httpx
import pytest

from paragon_listings.adapters.clients.odata import ODataClient, ODataEnvelope
from paragon_listings.adapters.clients.odata_filters import property_url
from paragon_listings.adapters.clients.token_manager import TokenManager
from paragon_listings.adapters.kv_store import InMemoryKeyValueStore
from paragon_listings.errors import FeedError, RunawayPaginationError
from tests.fakes import BASE_URL, TOKEN_URL, FakeParagonFeed, make_config, prop


def _client_with(handler, **cfg) -> ODataClient:
    """ODataClient whose token endpoint always succeeds and whose feed is `handler`."""
    calls = {"token": 0}

    def _route(request: httpx.Request) -> httpx.Response:
        if str(request.url).startswith(TOKEN_URL):
            calls["token"] += 1
            return httpx.Response(200, json={"access_token": f"t{calls['token']}", "expires_in": 3600})
        return handler(request)

    config = make_config(**cfg)
    http = httpx.AsyncClient(transport=httpx.MockTransport(_route))
    client = ODataClient(config, TokenManager(config, InMemoryKeyValueStore(), http), http)
    client.token_calls = calls  # type: ignore[attr-defined]
    return client


def _odata_client(feed: FakeParagonFeed, **cfg) -> ODataClient:
    config = make_config(**cfg)
    http = feed.client()
    return ODataClient(config, TokenManager(config, InMemoryKeyValueStore(), http), http)


@pytest.mark.asyncio
async def test_follows_three_linked_pages_in_order():
    feed = FakeParagonFeed([prop(f"K{i:03d}") for i in range(250)], server_page_cap=100)
    client = _odata_client(feed)

    env = await client.get_following_pagination(property_url(BASE_URL, "", top=2500))

    assert len(env.value) == 250
    assert env.count == 250
    assert env.next_link is None
    assert [p["ListingKey"] for p in env.value] == [f"K{i:03d}" for i in range(250)]
    assert len(feed.urls("Property")) == 3


@pytest.mark.asyncio
async def test_single_page_without_next_link_is_returned_as_is():
    feed = FakeParagonFeed([prop("A"), prop("B")])
    client = _odata_client(feed)

    env = await client.get_following_pagination(property_url(BASE_URL, "", top=2500))

    assert [p["ListingKey"] for p in env.value] == ["A", "B"]
    assert len(feed.urls("Property")) == 1


@pytest.mark.asyncio
async def test_inconsistent_count_is_tolerated():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"@odata.context": "x", "@odata.count": 10, "value": [{"ListingKey": "A"}]})

    client = _client_with(handler)
    env = await client.get_following_pagination(f"{BASE_URL}/Property?$count=true")

    assert env.count == 10
    assert len(env.value) == 1


@pytest.mark.asyncio
async def test_runaway_pagination_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"@odata.context": "x", "@odata.nextLink": f"{BASE_URL}/Property?page=again", "value": [{"n": 1}]},
        )

    client = _client_with(handler, max_pages=5)
    with pytest.raises(RunawayPaginationError):
        await client.get_following_pagination(f"{BASE_URL}/Property")


@pytest.mark.asyncio
async def test_non_2xx_raises_feed_error_with_status_and_body():
    client = _client_with(lambda r: httpx.Response(500, text="boom"))

    with pytest.raises(FeedError) as ei:
        await client.get(f"{BASE_URL}/Property")

    assert ei.value.status == 500
    assert ei.value.body == "boom"
    assert ei.value.parse_error is False


@pytest.mark.asyncio
async def test_invalid_json_is_a_parse_failure():
    client = _client_with(lambda r: httpx.Response(200, text="<html>gateway</html>"))

    with pytest.raises(FeedError) as ei:
        await client.get(f"{BASE_URL}/Property")

    assert ei.value.parse_error is True


@pytest.mark.asyncio
async def test_json_without_value_list_is_a_parse_failure():
    client = _client_with(lambda r: httpx.Response(200, json={"error": "nope"}))

    with pytest.raises(FeedError) as ei:
        await client.get(f"{BASE_URL}/Property")

    assert ei.value.parse_error is True


@pytest.mark.asyncio
async def test_unauthorized_refreshes_token_once():
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers["Authorization"])
        if len(seen) == 1:
            return httpx.Response(401, text="expired")
        return httpx.Response(200, json={"@odata.context": "x", "value": []})

    client = _client_with(handler)
    env = await client.get(f"{BASE_URL}/Property")

    assert env.value == []
    assert seen == ["Bearer t1", "Bearer t2"]
    assert client.token_calls["token"] == 2  # type: ignore[attr-defined]


@pytest.mark.asyncio
async def test_transient_status_is_retried():
    attempts = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["n"] += 1
        if attempts["n"] < 3:
            return httpx.Response(503, text="busy")
        return httpx.Response(200, json={"@odata.context": "x", "value": [{"ListingKey": "A"}]})

    client = _client_with(handler, max_retries=2, backoff_base_s=0.0)
    env = await client.get(f"{BASE_URL}/Property")

    assert attempts["n"] == 3
    assert env.value == [{"ListingKey": "A"}]


@pytest.mark.asyncio
async def test_timeout_becomes_feed_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    client = _client_with(handler)
    with pytest.raises(FeedError):
        await client.get(f"{BASE_URL}/Property")


def test_envelope_payload_mapping():
    env = ODataEnvelope.from_payload(
        {"@odata.context": "ctx", "@odata.count": "3", "@odata.nextLink": "next", "value": [{"a": 1}, "junk"]}
    )
    assert env.count == 3
    assert env.next_link == "next"
    assert env.value == [{"a": 1}]
    assert env.to_payload() == {"@odata.context": "ctx", "@odata.nextLink": "next", "@odata.count": 3, "value": [{"a": 1}]}
