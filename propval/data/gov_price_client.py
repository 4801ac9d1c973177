import time

import httpx

from .base import AdminAddress, GovPriceProvider, GovPriceRow
from ..core.config import Settings
from ..core.utils import fnv1a_32, fold_text, seeded_rand

# Province ids used by the land-price table, keyed by folded province name
PROVINCE_IDS = {
    "hanoi": "01",
    "haiphong": "31",
    "bacninh": "27",
    "danang": "48",
    "hochiminh": "79",
    "cantho": "92",
}
_COLUMNS = ("id", "district_name", "ward_name", "road_name", "vt1", "vt2", "vt3", "vt4", "vt5", "type")


def province_id(city: str) -> str | None:
    folded = fold_text(city)
    for name, pid in PROVINCE_IDS.items():
        if name in folded:
            return pid
    return None


def search_name(name: str) -> str:
    """'Quận Hà Đông' / 'ha_dong' -> 'hà đông' / 'ha dong' as the table search expects."""
    text = name.replace("_", " ").strip()
    lowered = text.lower()
    for prefix in ("quận ", "huyện ", "thị xã ", "thành phố ", "phường ", "xã ", "thị trấn "):
        if lowered.startswith(prefix):
            return lowered[len(prefix):].strip()
    return lowered


def _price(value) -> float | None:
    if value in (None, "", "-"):
        return None
    digits = "".join(c for c in str(value) if c.isdigit())
    return float(digits) if digits else None


class MockGovPrice(GovPriceProvider):
    """Plausible reference prices for one road segment; deterministic per district."""
    async def lookup(self, address: AdminAddress, road: str | None = None) -> list[GovPriceRow]:
        seed = fnv1a_32(f"{address.city}|{address.district}|{road or ''}")
        vt1 = round(20_000_000 + seeded_rand(seed, 1)[0] * 140_000_000, -5)
        return [GovPriceRow(
            district=address.district,
            road=road or "main road",
            land_type="urban residential land",
            prices=tuple(round(vt1 * f, -5) for f in (1.0, 0.6, 0.5, 0.4, 0.35)),
        )]


class HttpGovPrice(GovPriceProvider):
    """
    Government land-price table (DataTables JSON endpoint):
    GET {base}/seo/pricing.data with column searches for district and road.
    """
    def __init__(self, base_url: str, timeout: float = 15.0, page_size: int = 50):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.page_size = page_size

    def _params(self, address: AdminAddress, road: str | None) -> list[tuple[str, str]]:
        searches = {"district_name": search_name(address.district), "road_name": search_name(road or "")}
        params = [("draw", "1"), ("start", "0"), ("length", str(self.page_size))]
        for idx, col in enumerate(_COLUMNS):
            params += [
                (f"columns[{idx}][data]", col),
                (f"columns[{idx}][name]", col),
                (f"columns[{idx}][searchable]", "true"),
                (f"columns[{idx}][orderable]", "true"),
                (f"columns[{idx}][search][value]", searches.get(col, "")),
                (f"columns[{idx}][search][regex]", "false"),
            ]
        params += [
            ("search[value]", ""),
            ("search[regex]", "false"),
            ("province_id", province_id(address.city) or "01"),
            ("_", str(int(time.time() * 1000))),
        ]
        return params

    async def lookup(self, address: AdminAddress, road: str | None = None) -> list[GovPriceRow]:
        if not address.district:
            return []
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            r = await client.get(
                f"{self.base_url}/seo/pricing.data",
                params=self._params(address, road),
                headers={"Accept": "application/json", "X-Requested-With": "XMLHttpRequest"},
            )
            r.raise_for_status()
            rows = r.json().get("data") or []
        return [
            GovPriceRow(
                district=row.get("district_name") or "",
                road=row.get("road_name") or "",
                segment=row.get("ward_name") or "",
                land_type=row.get("type") or "",
                prices=tuple(_price(row.get(f"vt{i}")) for i in range(1, 6)),
            )
            for row in rows
        ]


def format_reference_price(rows: list[GovPriceRow], limit: int = 3) -> str | None:
    """Condense the table rows into one line per road segment."""
    lines = []
    for row in rows[:limit]:
        priced = [(i, p) for i, p in enumerate(row.prices, start=1) if p]
        if not priced:
            continue
        positions = ", ".join(f"position {i}: {p / 1_000_000:,.1f} million VND/m²" for i, p in priced)
        where = " - ".join(part for part in (row.road, row.segment, row.district) if part)
        lines.append(f"{where}: {positions}")
    return "\n".join(lines) if lines else None


def gov_price_client(settings: Settings) -> GovPriceProvider:
    if settings.GOV_PRICE_PROVIDER == "http" and settings.GOV_PRICE_BASE_URL:
        return HttpGovPrice(settings.GOV_PRICE_BASE_URL, timeout=settings.GOV_PRICE_TIMEOUT_SECONDS)
    return MockGovPrice()
