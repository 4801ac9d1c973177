from dataclasses import dataclass, field, fields
from typing import Any, Mapping

from ..core.utils import to_number
from ..data.base import AdminAddress, MarketTrend
from ..geo.distance import DistanceAnalysis

# Listing-platform market category per property type
CATEGORY_BY_TYPE = {
    "apartment": "chung_cu",
    "lane_house": "nha_hem_ngo",
    "town_house": "nha_mat_pho",
    "land": "ban_dat",
    "villa": "biet_thu_lien_ke",
    "NORMAL": "nha_mat_pho",
}
DEFAULT_CATEGORY = "nha_mat_pho"

# Values assumed for anything the caller leaves out
PROPERTY_DEFAULTS: dict[str, Any] = {
    "property_type": "town_house",
    "land_area": 45.0,
    "house_area": 45.0,
    "lane_width": 3.0,
    "facade_width": 4.0,
    "facade_count": 1,
    "story_count": 3,
    "bedrooms": 2,
    "bathrooms": 2,
    "legal": "pink_book",
    "year_built": 2015,
}


@dataclass(frozen=True)
class PropertyDescriptor:
    latitude: float | None
    longitude: float | None
    property_type: str
    land_area: float
    house_area: float
    lane_width: float
    facade_width: float
    facade_count: int
    story_count: int
    bedrooms: int
    bathrooms: int
    legal: str
    year_built: int
    address: str = ""
    city: str | None = None
    district: str | None = None
    ward: str | None = None
    street: str | None = None
    administrative_level: int = 0
    amenities: tuple[str, ...] = ()

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def category(self) -> str:
        return CATEGORY_BY_TYPE.get(self.property_type, DEFAULT_CATEGORY)

    @property
    def total_floor_area(self) -> float:
        return to_number(self.house_area) * to_number(self.story_count)

    def seed_key(self) -> str:
        lat = f"{self.latitude:.5f}" if self.latitude is not None else "-"
        lon = f"{self.longitude:.5f}" if self.longitude is not None else "-"
        return f"{lat},{lon}|{self.property_type}|{self.land_area}|{self.house_area}|{self.story_count}"


def apply_defaults(details: Mapping[str, Any] | None, latitude: float | None = None,
                   longitude: float | None = None) -> PropertyDescriptor:
    """
    The one place defaults are filled in. `details` uses descriptor field
    names; None values and unknown keys are ignored.
    """
    known = {f.name for f in fields(PropertyDescriptor)}
    merged: dict[str, Any] = dict(PROPERTY_DEFAULTS)
    for key, value in (details or {}).items():
        if key in known and value is not None:
            merged[key] = value
    merged["amenities"] = tuple(a for a in merged.get("amenities", ()) if a)
    return PropertyDescriptor(latitude=latitude, longitude=longitude, **{
        k: v for k, v in merged.items() if k not in ("latitude", "longitude")
    })


@dataclass(frozen=True)
class CoefficientSet:
    lane: float = 0.0
    legal: float = 0.0
    facade_width: float = 0.0
    facade_count: float = 0.0

    @property
    def total(self) -> float:
        return self.lane + self.legal + self.facade_width + self.facade_count

    def as_dict(self) -> dict[str, float]:
        return {
            "lane": self.lane,
            "legal": self.legal,
            "facade_width": self.facade_width,
            "facade_count": self.facade_count,
            "total": round(self.total, 4),
        }


@dataclass(frozen=True)
class ConstructionBreakdown:
    floor_area: float
    unit_price: float
    wear: float
    room: float
    toilet: float


@dataclass(frozen=True)
class PricingSeed:
    coefficients: CoefficientSet
    base_price_per_m2: float
    lot_size: float
    reasonable_value: int
    construction_price: int
    construction: ConstructionBreakdown


@dataclass(frozen=True)
class ValuationEstimate:
    low_value: int
    reasonable_value: int
    high_value: int
    construction_price: int

    def __post_init__(self):
        if min(self.low_value, self.reasonable_value, self.high_value, self.construction_price) < 0:
            raise ValueError("valuation figures must be non-negative")
        if not self.low_value <= self.reasonable_value <= self.high_value:
            raise ValueError("valuation range must satisfy low <= reasonable <= high")

    @classmethod
    def bounded(cls, low: float, reasonable: float, high: float, construction: float) -> "ValuationEstimate":
        """Clamp untrusted figures to zero and order them."""
        lo, mid, hi = sorted(max(0, int(round(v))) for v in (low, reasonable, high))
        return cls(lo, mid, hi, max(0, int(round(construction))))

    def as_dict(self) -> dict[str, int]:
        return {
            "low_value": self.low_value,
            "reasonable_value": self.reasonable_value,
            "high_value": self.high_value,
            "construction_price": self.construction_price,
        }


@dataclass(frozen=True)
class AnalysisScores:
    location_score: float
    legality_score: float
    liquidity_score: float
    evaluation_score: float
    dividend_score: float
    descriptions: tuple[str, ...] = field(default_factory=tuple)

    def as_dict(self) -> dict[str, Any]:
        return {
            "location_score": self.location_score,
            "legality_score": self.legality_score,
            "liquidity_score": self.liquidity_score,
            "evaluation_score": self.evaluation_score,
            "dividend_score": self.dividend_score,
            "descriptions": list(self.descriptions),
        }


@dataclass(frozen=True)
class SharedContext:
    """Everything the merge step learned about the property's surroundings, read by the AI stages."""
    address: AdminAddress
    market_summary: str
    market_available: bool
    trend: MarketTrend | None
    search_commentary: str
    source_urls: tuple[str, ...]
    gov_reference_price: str | None
    distance: DistanceAnalysis | None
    amenities: tuple[str, ...]
