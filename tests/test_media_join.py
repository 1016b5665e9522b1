import httpx
import pytest

from paragon_listings.domain.media import prepare_media
from tests.fakes import FakeParagonFeed, make_service, media, prop


@pytest.mark.asyncio
async def test_media_is_deduped_and_sorted_by_order():
    feed = FakeParagonFeed(
        [prop("L1")],
        [
            media("m3", "L1", order=3),
            media("m-none", "L1"),
            media("m1", "L1", order=1),
            media("m1", "L1", order=1),  # repeated across pages
            media("m2", "L1", order=2),
        ],
    )
    svc = make_service(feed)

    out = await svc.media.attach_media([prop("L1")])

    assert [m["MediaKey"] for m in out[0]["Media"]] == ["m1", "m2", "m3", "m-none"]


@pytest.mark.asyncio
async def test_every_property_comes_back_once_in_order():
    props = [prop(f"L{i}") for i in range(5)]
    feed = FakeParagonFeed(props, [media("a", "L3", order=0), media("b", "L0", order=0)])
    svc = make_service(feed)

    out = await svc.media.attach_media([dict(p) for p in props])

    assert [p["ListingKey"] for p in out] == ["L0", "L1", "L2", "L3", "L4"]
    assert [len(p["Media"]) for p in out] == [1, 0, 0, 1, 0]
    assert out[3]["Media"][0]["ResourceRecordKey"] == "L3"


@pytest.mark.asyncio
async def test_media_is_matched_by_listing_key_not_position():
    # the feed answers media in its own order; assignment must not depend on it
    feed = FakeParagonFeed([], [media("b", "B", order=0), media("a", "A", order=0)])
    svc = make_service(feed)

    out = await svc.media.attach_media([prop("A"), prop("B")])

    assert out[0]["Media"][0]["MediaKey"] == "a"
    assert out[1]["Media"][0]["MediaKey"] == "b"


@pytest.mark.asyncio
async def test_many_properties_are_split_across_batches():
    props = [prop(f"K{i:07d}") for i in range(300)]
    feed = FakeParagonFeed(props, [media(f"m{i}", f"K{i:07d}", order=0) for i in range(300)])
    svc = make_service(feed)

    out = await svc.media.attach_media([dict(p) for p in props])

    media_urls = feed.urls("Media")
    assert len(media_urls) > 1
    assert all(len(u) <= 2048 for u in media_urls)
    assert svc.media.last_stats.batches == len(media_urls)
    assert all(len(p["Media"]) == 1 for p in out)


@pytest.mark.asyncio
async def test_media_pages_are_followed():
    feed = FakeParagonFeed(
        [prop("L1")],
        [media(f"m{i}", "L1", order=i) for i in range(7)],
        server_page_cap=3,
    )
    svc = make_service(feed)

    out = await svc.media.attach_media([prop("L1")])

    assert [m["Order"] for m in out[0]["Media"]] == list(range(7))
    assert len(feed.urls("Media")) == 3


@pytest.mark.asyncio
async def test_failed_batch_only_empties_its_own_properties():
    props = [prop(f"K{i:07d}") for i in range(100)]
    feed = FakeParagonFeed(props, [media(f"m{i}", f"K{i:07d}", order=0) for i in range(100)])
    feed.fail_media_keys = {"K0000000"}
    svc = make_service(feed)

    out = await svc.media.attach_media([dict(p) for p in props])

    assert out[0]["Media"] == []
    assert out[-1]["Media"] != []
    assert svc.media.last_stats.failed_batches == 1
    assert len(out) == 100


class _RevokedMediaFeed(FakeParagonFeed):
    """Media answers 401 and the token endpoint goes down right after."""

    def handle(self, request):
        if request.url.path.endswith("/Media"):
            self.requests.append(request)
            self.token_status = 500
            return httpx.Response(401, text="token revoked")
        return super().handle(request)


@pytest.mark.asyncio
async def test_auth_failure_on_media_degrades_to_empty_media():
    feed = _RevokedMediaFeed([prop("A"), prop("B")], [media("m1", "A", order=0)])
    svc = make_service(feed)

    env = await svc.search_by_zip_code("53703")

    assert [p["ListingKey"] for p in env.value] == ["A", "B"]
    assert [p["Media"] for p in env.value] == [[], []]
    assert svc.media.last_stats.failed_batches == 1


@pytest.mark.asyncio
async def test_items_without_url_are_kept_and_limit_applies():
    feed = FakeParagonFeed(
        [],
        [
            media("m1", "L1", order=1),
            media("m2", "L1", order=2, MediaURL=None),
            media("m3", "L1", order=3),
            media("m4", "L1", order=4),
        ],
    )
    svc = make_service(feed)

    out = await svc.media.attach_media([prop("L1")], limit=2)

    assert [m["MediaKey"] for m in out[0]["Media"]] == ["m1", "m2"]
    assert out[0]["Media"][1]["MediaURL"] is None


@pytest.mark.asyncio
async def test_empty_input_makes_no_requests():
    feed = FakeParagonFeed()
    svc = make_service(feed)

    assert await svc.media.attach_media([]) == []
    assert feed.requests == []


@pytest.mark.asyncio
async def test_property_without_listing_key_gets_empty_media():
    feed = FakeParagonFeed([], [media("m1", "L1", order=0)])
    svc = make_service(feed)

    no_key = prop("X")
    del no_key["ListingKey"]
    out = await svc.media.attach_media([no_key, prop("L1")])

    assert out[0]["Media"] == []
    assert [m["MediaKey"] for m in out[1]["Media"]] == ["m1"]


def test_prepare_media_keeps_keyless_items():
    items = [{"MediaURL": "u1"}, {"MediaURL": "u2", "Order": 0}, {"MediaURL": "u3"}]
    assert [m["MediaURL"] for m in prepare_media(items)] == ["u2", "u1", "u3"]
