import httpx
import pytest
import respx
from httpx import Response

from propval.core.cache import Cache
from propval.core.errors import ParseError
from propval.data.trends_client import (
    NO_MARKET_DATA, HttpTrends, MockTrends, format_market_summary, parse_trend_items,
)
from tests.fakes import flat_trend

BASE = "http://platform.test"
AGGREGATE = f"{BASE}/v2/market-real-estate-prices/aggregate"

ITEMS = [
    # Out of order on purpose; parsing sorts by date
    {"createdDate": "2025-02-15T00:00:00Z", "pricePerUnit": 66_000_000, "count": 12,
     "minPrice": 50_000_000, "maxPrice": 80_000_000},
    {"createdDate": "2025-01-15T00:00:00Z", "pricePerUnit": 60_000_000, "count": 8},
    {"createdDate": "2025-03-15T00:00:00Z", "pricePerUnit": None},
]


def by_category(payloads: dict):
    def handler(request: httpx.Request) -> Response:
        category = request.url.params["category"]
        return Response(200, json={category: payloads.get(category, [])})
    return handler


def test_parse_trend_items_sorts_and_scales():
    points = parse_trend_items(ITEMS)

    assert [p.month for p in points] == ["2025-01", "2025-02"]
    assert [p.price for p in points] == [60, 66]
    assert points[0].min_price == 42 and points[0].max_price == 78
    assert points[1].min_price == 50 and points[1].max_price == 80


def test_parse_trend_items_unreadable_date_is_parse_error():
    with pytest.raises(ParseError, match="unreadable trend item"):
        parse_trend_items([{"createdDate": "last spring", "pricePerUnit": 60_000_000}])


def test_summary_has_average_line():
    summary = format_market_summary(flat_trend(price=60, months=6))
    assert "- Average price: 60 million VND/m²" in summary
    assert "- Trend: flat 0.0% over 6 months" in summary
    assert format_market_summary(None) == NO_MARKET_DATA


@pytest.mark.asyncio
async def test_http_trends_requested_category():
    with respx.mock(assert_all_called=True) as respx_mock:
        route = respx_mock.get(AGGREGATE).mock(side_effect=by_category({"nha_mat_pho": ITEMS}))
        trend = await HttpTrends(BASE).fetch("ha_noi", "dong_da", "nha_mat_pho", token="tok")

    assert trend.category == "nha_mat_pho"
    assert trend.used_fallback_category is False
    request = route.calls.last.request
    assert request.headers["Authorization"] == "Bearer tok"
    assert request.url.params["address.city"] == "ha_noi"
    assert request.url.params["address.district"] == "dong_da"
    created = request.url.params.get_list("createdDate")
    assert created[0].startswith("gte") and created[1].startswith("lte")

    summary = format_market_summary(trend)
    assert "- Average price: 63 million VND/m²" in summary
    assert "- Trend: up 10.0% over 2 months" in summary


@pytest.mark.asyncio
async def test_http_trends_falls_back_to_street_front_category():
    with respx.mock(assert_all_called=True) as respx_mock:
        route = respx_mock.get(AGGREGATE).mock(side_effect=by_category({"nha_mat_pho": ITEMS}))
        trend = await HttpTrends(BASE).fetch("ha_noi", "dong_da", "chung_cu")

    assert route.call_count == 2
    assert trend.category == "nha_mat_pho"
    assert trend.requested_category == "chung_cu"
    assert "No chung_cu listings; figures use nha_mat_pho" in format_market_summary(trend)


@pytest.mark.asyncio
async def test_http_trends_no_data_anywhere():
    with respx.mock() as respx_mock:
        respx_mock.get(AGGREGATE).mock(side_effect=by_category({}))
        trend = await HttpTrends(BASE).fetch("ha_noi", "dong_da", "chung_cu")

    assert trend is None
    assert format_market_summary(trend) == NO_MARKET_DATA


@pytest.mark.asyncio
async def test_http_trends_cached_per_locality():
    cache = Cache(ttl_seconds=60)
    client = HttpTrends(BASE, cache=cache)
    with respx.mock() as respx_mock:
        route = respx_mock.get(AGGREGATE).mock(side_effect=by_category({"nha_mat_pho": ITEMS}))
        first = await client.fetch("ha_noi", "dong_da", "nha_mat_pho")
        second = await client.fetch("ha_noi", "dong_da", "nha_mat_pho")
        await client.fetch("ha_noi", "cau_giay", "nha_mat_pho")

    assert first == second
    assert route.call_count == 2


@pytest.mark.asyncio
async def test_http_trends_propagates_upstream_errors():
    with respx.mock() as respx_mock:
        respx_mock.get(AGGREGATE).mock(return_value=Response(502))
        with pytest.raises(httpx.HTTPStatusError):
            await HttpTrends(BASE).fetch("ha_noi", "dong_da", "nha_mat_pho")


@pytest.mark.asyncio
async def test_mock_trends_is_deterministic():
    a = await MockTrends().fetch("ha_noi", "dong_da", "nha_mat_pho")
    b = await MockTrends().fetch("ha_noi", "dong_da", "nha_mat_pho")

    assert a == b
    assert len(a.points) == 12
    assert all(p.price > 0 for p in a.points)
