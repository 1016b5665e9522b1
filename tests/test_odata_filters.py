from urllib.parse import unquote

from paragon_listings.adapters.clients.odata_filters import (
    PropertyCriteria,
    build_property_filter,
    encoded_length,
    media_base_url_length,
    media_url,
    partition_ids_into_filter_batches,
    property_url,
    quote_odata,
)
from paragon_listings.domain.geo import bounding_box
from tests.fakes import BASE_URL


def _ids(n: int) -> list[str]:
    return [f"K{i:07d}" for i in range(n)]


def test_ten_thousand_ids_pack_into_url_sized_batches():
    ids = _ids(10_000)
    batches = partition_ids_into_filter_batches(ids, base_url_length=100, max_url_length=2048)

    # 35 encoded chars per clause, 8 per " or ": 45 clauses fit in 1948
    assert len(batches) == 223
    assert all(100 + encoded_length(b) <= 2048 for b in batches)
    assert batches[0].count("ResourceRecordKey eq") == 45
    assert batches[-1].count("ResourceRecordKey eq") == 10_000 - 222 * 45


def test_every_id_lands_in_exactly_one_batch_in_order():
    ids = _ids(500)
    batches = partition_ids_into_filter_batches(ids, base_url_length=300, max_url_length=1024)

    recovered = [
        clause.split("'")[1]
        for b in batches
        for clause in b.split(" or ")
    ]
    assert recovered == ids


def test_empty_input_has_no_batches():
    assert partition_ids_into_filter_batches([], base_url_length=100) == []


def test_oversized_id_still_gets_its_own_batch():
    huge = "X" * 3000
    batches = partition_ids_into_filter_batches(["A", huge, "B"], base_url_length=100, max_url_length=2048)

    assert batches == [
        "ResourceRecordKey eq 'A'",
        f"ResourceRecordKey eq '{huge}'",
        "ResourceRecordKey eq 'B'",
    ]


def test_quotes_in_ids_are_doubled():
    batches = partition_ids_into_filter_batches(["O'Hare"], base_url_length=0)
    assert batches == ["ResourceRecordKey eq 'O''Hare'"]
    assert quote_odata("it's") == "it''s"


def test_real_media_urls_stay_under_the_limit():
    base_len = media_base_url_length(BASE_URL)
    for b in partition_ids_into_filter_batches(_ids(2_000), base_url_length=base_len, max_url_length=2048):
        assert len(media_url(BASE_URL, top=2500, filter_expr=b)) <= 2048


def test_media_url_keeps_filter_last():
    url = media_url(BASE_URL, top=2500, filter_expr="ResourceRecordKey eq 'A'")
    assert url.startswith(f"{BASE_URL}/Media?$select=")
    assert url.endswith("$filter=ResourceRecordKey%20eq%20'A'")


def test_property_filter_defaults_to_active_and_not_lease():
    flt = build_property_filter(PropertyCriteria(postal_code="53703"))
    assert flt == (
        "StandardStatus eq 'Active'"
        " and (LeaseConsideredYN eq false or LeaseConsideredYN eq null)"
        " and PostalCode eq '53703'"
    )


def test_property_filter_by_id_can_skip_active():
    flt = build_property_filter(PropertyCriteria(listing_id="L1", active_only=False))
    assert "StandardStatus" not in flt
    assert "ListingId eq 'L1'" in flt
    assert "LeaseConsideredYN eq false" in flt


def test_property_filter_combines_location_and_allow_list():
    flt = build_property_filter(
        PropertyCriteria(city="Fond du Lac", street_name="O'Neil", allowed_zip_codes=("53703", "53704"))
    )
    assert "contains(City, 'Fond du Lac')" in flt
    assert "contains(StreetName, 'O''Neil')" in flt
    assert flt.endswith("(PostalCode eq '53703' or PostalCode eq '53704')")


def test_property_filter_bounding_box():
    flt = build_property_filter(PropertyCriteria(box=bounding_box(43.0, -89.0, 1.0)))
    assert "Latitude ge 42.98" in flt
    assert "Longitude le -88.98" in flt


def test_property_url_shape():
    url = property_url(BASE_URL, "PostalCode eq '53703'", top=50)
    assert unquote(url) == f"{BASE_URL}/Property?$count=true&$filter=PostalCode eq '53703'&$top=50"
