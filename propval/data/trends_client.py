from datetime import date, datetime

import httpx

from .base import MarketTrend, MarketTrendProvider, TrendPoint
from .location_client import auth_headers
from ..core.cache import Cache
from ..core.config import Settings
from ..core.errors import ParseError
from ..core.utils import fnv1a_32, seeded_rand, to_number

# Street-front houses have the densest price history; used when a category is empty
FALLBACK_CATEGORY = "nha_mat_pho"
NO_MARKET_DATA = "No market data available for this area."
WINDOW_MONTHS = 12


def _months_back(today: date, n: int) -> date:
    year = today.year + (today.month - n - 1) // 12
    month = (today.month - n - 1) % 12 + 1
    return date(year, month, 1)


class MockTrends(MarketTrendProvider):
    """
    Synthetic monthly price-per-m² series around a locality-specific level.
    """
    async def fetch(self, city: str, district: str, category: str, token: str | None = None) -> MarketTrend | None:
        seed = fnv1a_32(f"{city}|{district}|{category}")
        level = 180.0 + seeded_rand(seed, 1)[0] * 160.0  # million VND per m²
        today = date.today().replace(day=1)
        points = []
        for i in range(WINDOW_MONTHS, 0, -1):
            # Month-by-month drift of +/- 2% with a slight upward bias
            drift = (seeded_rand(seed + i, 1)[0] - 0.4) * 4.0
            level *= 1.0 + drift / 100.0
            price = round(level)
            points.append(TrendPoint(
                month=_months_back(today, i).strftime("%Y-%m"),
                price=price,
                price_raw=price * 1_000_000,
                count=5 + int(seeded_rand(seed + 31 * i, 1)[0] * 40),
                min_price=round(price * 0.7),
                max_price=round(price * 1.3),
            ))
        return MarketTrend(category=category, requested_category=category, points=tuple(points))


class HttpTrends(MarketTrendProvider):
    """
    Listing platform price aggregate:
    GET {base}/v2/market-real-estate-prices/aggregate
    The response is keyed by category; each item carries createdDate,
    pricePerUnit (VND/m²), count, minPrice and maxPrice.
    Responses are cached per locality and category.
    """
    def __init__(self, base_url: str, cache: Cache | None = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.cache = cache
        self.timeout = timeout

    async def fetch(self, city: str, district: str, category: str, token: str | None = None) -> MarketTrend | None:
        points = await self._points(city, district, category, token)
        if points:
            return MarketTrend(category=category, requested_category=category, points=points)
        if category != FALLBACK_CATEGORY:
            points = await self._points(city, district, FALLBACK_CATEGORY, token)
            if points:
                return MarketTrend(category=FALLBACK_CATEGORY, requested_category=category, points=points)
        return None

    async def _points(self, city: str, district: str, category: str, token: str | None) -> tuple[TrendPoint, ...]:
        key = f"trend:{city}:{district}:{category}"
        items = await self.cache.get_json(key) if self.cache else None
        if items is None:
            items = await self._download(city, district, category, token)
            if self.cache:
                await self.cache.set_json(key, items)
        return parse_trend_items(items)

    async def _download(self, city: str, district: str, category: str, token: str | None) -> list[dict]:
        today = date.today()
        params = [
            ("address.city", city),
            ("address.district", district),
            ("category", category),
            ("createdDate", f"gte{_months_back(today, WINDOW_MONTHS).strftime('%Y-%m')}"),
            ("createdDate", f"lte{today.isoformat()}"),
        ]
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            r = await client.get(
                f"{self.base_url}/v2/market-real-estate-prices/aggregate",
                params=params,
                headers=auth_headers(token),
            )
            r.raise_for_status()
            body = r.json()
        items = body.get(category) if isinstance(body, dict) else None
        return items if isinstance(items, list) else []


def parse_trend_items(items: list[dict]) -> tuple[TrendPoint, ...]:
    """Keep items with a date and a price, oldest first, prices in millions."""
    rows = []
    for item in items:
        created, per_unit = item.get("createdDate"), item.get("pricePerUnit")
        if not created or not per_unit:
            continue
        try:
            when = datetime.fromisoformat(str(created).replace("Z", "+00:00"))
            rows.append((when, float(per_unit), item))
        except (TypeError, ValueError) as exc:
            raise ParseError(f"unreadable trend item ({type(exc).__name__})", source="trends") from exc
    rows.sort(key=lambda row: row[0])
    points = []
    for when, per_unit, item in rows:
        price = round(per_unit / 1_000_000)
        low, high = item.get("minPrice"), item.get("maxPrice")
        points.append(TrendPoint(
            month=when.strftime("%Y-%m"),
            price=price,
            price_raw=per_unit,
            count=item.get("count"),
            min_price=round(to_number(low) / 1_000_000) if low else round(price * 0.7),
            max_price=round(to_number(high) / 1_000_000) if high else round(price * 1.3),
        ))
    return tuple(points)


def format_market_summary(trend: MarketTrend | None) -> str:
    """
    Plain-text summary handed to the pricing engine and the AI prompts.
    The "Average price: N million VND/m²" line is what the pricing engine reads.
    """
    if trend is None or not trend.points:
        return NO_MARKET_DATA
    points = trend.points
    prices = [p.price for p in points]
    average = sum(prices) / len(prices)
    first, latest = points[0], points[-1]
    change = (latest.price - first.price) / first.price * 100.0 if first.price else 0.0
    direction = "up" if change > 0 else "down" if change < 0 else "flat"
    counts = [p.count for p in points if p.count]

    lines = [
        f"Market data for the last {len(points)} months ({trend.category}):",
        f"- Average price: {average:.0f} million VND/m²",
        f"- Price range: {min(prices):.0f} - {max(prices):.0f} million VND/m²",
        f"- Trend: {direction} {abs(change):.1f}% over {len(points)} months",
        f"- Latest price ({latest.month}): {latest.price:.0f} million VND/m²",
    ]
    if counts:
        lines.append(f"- Average transactions: {sum(counts) / len(counts):.0f} per month")
    if trend.used_fallback_category:
        lines.append(f"- No {trend.requested_category} listings; figures use {trend.category}")
    lines.append("Monthly detail:")
    lines.extend(
        f"  {p.month}: {p.price:.0f} million VND/m² ({p.min_price:.0f}-{p.max_price:.0f})"
        for p in points
    )
    return "\n".join(lines)


def trends_client(settings: Settings, cache: Cache | None = None) -> MarketTrendProvider:
    if settings.TRENDS_PROVIDER == "http" and settings.TRENDS_BASE_URL:
        return HttpTrends(settings.TRENDS_BASE_URL, cache=cache, timeout=settings.TRENDS_TIMEOUT_SECONDS)
    return MockTrends()
