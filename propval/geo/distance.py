"""
Distance from a property to its province and district administrative centres,
and the accessibility tier derived from the district distance.
"""
import math
import re
from dataclasses import dataclass

from .admin_centers import ADMIN_CENTERS
from ..core.utils import fold_text

EARTH_RADIUS_KM = 6371.0
UNKNOWN_DISTANCE_KM = 999.0

# Leading 21°01'41.9"N 105°50'29.6"E block some geocoders prepend
_DMS_PREFIX = re.compile(
    r"^\s*\d+°\s*\d+['′]\s*[\d.]*[\"″]?\s*[NS]\s*,?\s*\d+°\s*\d+['′]\s*[\d.]*[\"″]?\s*[EW]\s*,?\s*"
)
_DMS = re.compile(
    r"^\s*(\d+(?:\.\d+)?)\s*°\s*(?:(\d+(?:\.\d+)?)\s*['′]\s*)?(?:(\d+(?:\.\d+)?)\s*[\"″]\s*)?([NSEWnsew])?\s*$"
)
_DISTRICT_MARKERS = ("quận", "huyện", "thị xã", "thành phố")
_ADMIN_PREFIXES = (
    "thành phố ", "thanh pho ", "tỉnh ", "tinh ", "quận ", "quan ", "huyện ", "huyen ",
    "thị xã ", "thi xa ", "tp. ", "tp ",
)

# tier -> (upper bound km, location advantage, market impact)
ACCESSIBILITY_TIERS = (
    ("excellent", 2.0, "Central location within easy reach of the district centre",
     "Strong positive effect on value and high liquidity"),
    ("good", 5.0, "Convenient location a short trip from the district centre",
     "Positive effect on value"),
    ("fair", 10.0, "Moderate distance from the district centre",
     "Neutral effect on value"),
)
POOR_TIER = ("poor", "Far from the district centre, or the centre could not be identified",
             "May weigh on value and slow down a sale")


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in km, rounded to 2 decimals."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return round(EARTH_RADIUS_KM * c, 2)


def parse_dms(text: str | None) -> float | None:
    """21°01'41.9"N -> 21.028306; south and west are negative."""
    if not text:
        return None
    m = _DMS.match(text)
    if not m:
        return None
    degrees, minutes, seconds, hemisphere = m.groups()
    value = float(degrees) + float(minutes or 0) / 60 + float(seconds or 0) / 3600
    if hemisphere and hemisphere.upper() in ("S", "W"):
        value = -value
    return round(value, 6)


def parse_admin_names(formatted_address: str | None) -> tuple[str | None, str | None]:
    """
    (city, district) from a comma separated Vietnamese address. The city is
    the last part; the district is the closest earlier part carrying a
    district-level marker.
    """
    if not formatted_address:
        return None, None
    cleaned = _DMS_PREFIX.sub("", formatted_address)
    parts = [p.strip() for p in cleaned.split(",") if p.strip()]
    if not parts:
        return None, None
    city = parts[-1]
    for part in reversed(parts[:-1]):
        lowered = part.lower()
        if any(marker in lowered for marker in _DISTRICT_MARKERS):
            return city, part
    return city, None


def _core(name: str) -> str:
    text = name.replace("_", " ").strip().lower()
    for prefix in _ADMIN_PREFIXES:
        if text.startswith(prefix):
            text = text[len(prefix):]
            break
    return fold_text(text)


def _match(query: str | None, names: list[str]) -> str | None:
    """Exact match on the name without its admin prefix, then containment."""
    if not query:
        return None
    q_core, q_full = _core(query), fold_text(query)
    if not q_core:
        return None
    for name in names:
        if _core(name) == q_core:
            return name
    if len(q_core) < 3:
        return None
    for name in names:
        core = _core(name)
        if q_core in fold_text(name) or (len(core) >= 3 and core in q_full):
            return name
    return None


@dataclass(frozen=True)
class CenterDistance:
    name: str
    latitude: float
    longitude: float
    distance_km: float


@dataclass(frozen=True)
class DistanceAnalysis:
    to_city_center: CenterDistance | None
    to_district_center: CenterDistance | None
    accessibility_tier: str
    location_advantage: str
    market_impact: str

    def describe(self) -> str:
        lines = []
        if self.to_city_center:
            lines.append(f"- {self.to_city_center.distance_km} km to the centre of {self.to_city_center.name}")
        if self.to_district_center:
            lines.append(f"- {self.to_district_center.distance_km} km to the centre of {self.to_district_center.name}")
        lines.append(f"- Accessibility: {self.accessibility_tier} ({self.location_advantage}; {self.market_impact})")
        return "\n".join(lines)

    def as_dict(self) -> dict:
        def center(c: CenterDistance | None):
            return {"name": c.name, "distance_km": c.distance_km} if c else None
        return {
            "to_city_center": center(self.to_city_center),
            "to_district_center": center(self.to_district_center),
            "accessibility_tier": self.accessibility_tier,
            "location_advantage": self.location_advantage,
            "market_impact": self.market_impact,
        }


def classify_accessibility(district_distance_km: float | None) -> tuple[str, str, str]:
    distance = UNKNOWN_DISTANCE_KM if district_distance_km is None else district_distance_km
    for tier, bound, advantage, impact in ACCESSIBILITY_TIERS:
        if distance <= bound:
            return tier, advantage, impact
    return POOR_TIER


class DistanceAnalyzer:
    def __init__(self, centers: dict[str, dict] | None = None):
        self.centers = centers if centers is not None else ADMIN_CENTERS

    def find_centers(self, city: str | None, district: str | None) -> tuple[tuple[str, dict] | None, dict | None]:
        province_name = _match(city, list(self.centers))
        if province_name is None:
            return None, None
        province = self.centers[province_name]
        districts = province.get("districts", [])
        district_name = _match(district, [d["name"] for d in districts])
        district_entry = next((d for d in districts if d["name"] == district_name), None)
        return (province_name, province), district_entry

    def analyze(self, latitude: float, longitude: float, formatted_address: str | None,
                city_hint: str | None = None, district_hint: str | None = None) -> DistanceAnalysis:
        city, district = parse_admin_names(formatted_address)
        province, district_entry = self.find_centers(city or city_hint, district or district_hint)
        if province is None and city_hint and city_hint != city:
            province, district_entry = self.find_centers(city_hint, district_hint)
        if province is not None and district_entry is None and district_hint:
            _, district_entry = self.find_centers(province[0], district_hint)

        to_city = to_district = None
        if province is not None:
            name, entry = province
            to_city = CenterDistance(name, entry["latitude"], entry["longitude"],
                                     haversine_km(latitude, longitude, entry["latitude"], entry["longitude"]))
        if district_entry is not None:
            to_district = CenterDistance(
                district_entry["name"], district_entry["latitude"], district_entry["longitude"],
                haversine_km(latitude, longitude, district_entry["latitude"], district_entry["longitude"]),
            )

        tier, advantage, impact = classify_accessibility(to_district.distance_km if to_district else None)
        return DistanceAnalysis(to_city, to_district, tier, advantage, impact)
