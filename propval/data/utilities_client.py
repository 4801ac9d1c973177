import httpx

from .base import GeoPoint, NearbyUtility, UtilitiesProvider
from .location_client import auth_headers
from ..core.config import Settings
from ..core.errors import ParseError
from ..core.utils import fnv1a_32, seeded_rand

UTILITY_TYPES = ("hospital", "market", "restaurant", "cafe", "supermarket", "commercial_center")

_LABELS = {
    "hospital": "hospital",
    "market": "market",
    "restaurant": "restaurant",
    "cafe": "cafe",
    "supermarket": "supermarket",
    "commercial_center": "shopping centre",
}


class MockUtilities(UtilitiesProvider):
    """
    Synthetic amenities near a lat/lon. Names and distances are plausible but fake.
    """
    async def nearby(self, point: GeoPoint, radius_km: float = 5.0, size: int = 5,
                     token: str | None = None) -> list[NearbyUtility]:
        seed = fnv1a_32(f"{round(point.lat, 4)},{round(point.lon, 4)}")
        out: list[NearbyUtility] = []
        for i, kind in enumerate(UTILITY_TYPES):
            count = int(seeded_rand(seed + i, 1)[0] * (size + 1))
            for j in range(count):
                dist = round(0.1 + seeded_rand(seed + 7 * i + 13 * j, 1)[0] * (radius_km - 0.1), 2)
                out.append(NearbyUtility(type=kind, name=f"{_LABELS[kind].title()} {j + 1}", distance_km=dist))
        out.sort(key=lambda u: u.distance_km)
        return out


class HttpUtilities(UtilitiesProvider):
    """
    Listing platform points of interest:
    GET {base}/map-utilities?type=..&lat=..&lng=..&_distance=..&_size=..
    """
    def __init__(self, base_url: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def nearby(self, point: GeoPoint, radius_km: float = 5.0, size: int = 5,
                     token: str | None = None) -> list[NearbyUtility]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            r = await client.get(
                f"{self.base_url}/map-utilities",
                params={
                    "type": ",".join(UTILITY_TYPES),
                    "lat": point.lat,
                    "lng": point.lon,
                    "_distance": radius_km,
                    "_size": size,
                },
                headers={"Accept": "application/json", **auth_headers(token)},
            )
            r.raise_for_status()
            items = r.json().get("data") or []
        try:
            return [
                NearbyUtility(type=i["type"], name=i.get("name") or i["type"],
                              distance_km=float(i.get("distance") or 0.0))
                for i in items
            ]
        except (KeyError, TypeError, ValueError) as exc:
            raise ParseError(f"unreadable utility item ({type(exc).__name__})", source="utilities") from exc


def amenities_from_utilities(utilities: list[NearbyUtility]) -> list[str]:
    """
    Summarise nearby points of interest as amenity phrases, closest of each
    type first, followed by one overall density remark.
    """
    if not utilities:
        return []
    by_type: dict[str, list[NearbyUtility]] = {}
    for u in utilities:
        by_type.setdefault(u.type, []).append(u)

    out = []
    for kind in UTILITY_TYPES:
        found = sorted(by_type.get(kind, []), key=lambda u: u.distance_km)
        if not found:
            continue
        label = _LABELS[kind]
        if len(found) == 1:
            out.append(f"{label} {found[0].distance_km:.1f} km away ({found[0].name})")
        else:
            out.append(f"{len(found)} {label}s nearby, closest {found[0].distance_km:.1f} km")

    total = len(utilities)
    if total >= 10:
        out.append("dense amenities within walking distance")
    elif total >= 5:
        out.append("good everyday amenities nearby")
    else:
        out.append("some basic amenities nearby")
    return out


def merge_amenities(caller: list[str] | tuple[str, ...], derived: list[str]) -> tuple[str, ...]:
    """Caller-supplied amenities first, then derived ones; case-insensitive dedupe."""
    seen = set()
    merged = []
    for item in [*caller, *derived]:
        key = item.strip().lower()
        if key and key not in seen:
            seen.add(key)
            merged.append(item.strip())
    return tuple(merged)


def utilities_client(settings: Settings) -> UtilitiesProvider:
    if settings.UTILITIES_PROVIDER == "http" and settings.UTILITIES_BASE_URL:
        return HttpUtilities(settings.UTILITIES_BASE_URL, timeout=settings.UTILITIES_TIMEOUT_SECONDS)
    return MockUtilities()
