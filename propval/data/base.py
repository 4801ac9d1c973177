from typing import Protocol
from dataclasses import dataclass

# ----- Data shapes (thin & explicit) -----

@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lon: float

@dataclass(frozen=True)
class AdminAddress:
    city: str                     # platform code or display name, e.g. "ha_noi"
    district: str                 # e.g. "dong_da"
    ward: str = ""
    formatted_address: str = ""   # e.g. "Phường Láng Thượng, Quận Đống Đa, Hà Nội"
    point: GeoPoint | None = None

    def label(self) -> str:
        if self.formatted_address:
            return self.formatted_address
        return ", ".join(p for p in (self.ward, self.district, self.city) if p)

@dataclass(frozen=True)
class TrendPoint:
    month: str                    # "2025-03"
    price: float                  # million VND per m²
    price_raw: float              # VND per m²
    count: int | None = None
    min_price: float | None = None  # million VND per m²
    max_price: float | None = None

@dataclass(frozen=True)
class MarketTrend:
    category: str                 # category the points were found under
    requested_category: str
    points: tuple[TrendPoint, ...]

    @property
    def used_fallback_category(self) -> bool:
        return self.category != self.requested_category

@dataclass(frozen=True)
class NearbyUtility:
    type: str                     # hospital | market | restaurant | cafe | supermarket | commercial_center
    name: str
    distance_km: float

@dataclass(frozen=True)
class GovPriceRow:
    """One row of the government land-price table, prices in VND per m²."""
    district: str
    road: str
    segment: str = ""
    land_type: str = ""
    prices: tuple[float | None, ...] = ()   # position 1..5

# ----- Protocols (interfaces) -----

class LocationResolver(Protocol):
    async def resolve(self, point: GeoPoint, token: str | None = None) -> AdminAddress: ...

class MarketTrendProvider(Protocol):
    async def fetch(
        self, city: str, district: str, category: str, token: str | None = None
    ) -> MarketTrend | None: ...

class UtilitiesProvider(Protocol):
    async def nearby(
        self, point: GeoPoint, radius_km: float = 5.0, size: int = 5, token: str | None = None
    ) -> list[NearbyUtility]: ...

class GovPriceProvider(Protocol):
    async def lookup(self, address: AdminAddress, road: str | None = None) -> list[GovPriceRow]: ...
