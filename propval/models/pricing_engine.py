"""
Deterministic coefficient pricing.

Produces the baseline the AI refinement step adjusts: a land value from the
locality's average price per m², corrected by lane width, legal title, facade
width and corner count, plus a construction value from floor area and build
quality. Every tier is a closed lower bound, so a value sitting exactly on a
boundary takes the higher tier.
"""
import re
from datetime import date

from .base import CoefficientSet, ConstructionBreakdown, PricingSeed, PropertyDescriptor
from ..core.utils import to_number

# "Average price: 285 million VND/m²" (also the Vietnamese wording)
_AVERAGE_PRICE = re.compile(
    r"(?:average price|giá trung bình)\s*:\s*([\d][\d.,]*)\s*(?:million|triệu)",
    re.IGNORECASE,
)

LEGAL_COEFFICIENTS = {
    "contract": -0.20,
    "white_book": -0.30,
    "pink_book": 0.0,
    "red_book": 0.0,
}

# Construction cost per m² of floor by number of stories
UNIT_PRICE_LOW_RISE = 4_500_000
UNIT_PRICE_MID_RISE = 5_500_000
UNIT_PRICE_HIGH_RISE = 7_500_000


def lane_coefficient(width) -> float:
    w = to_number(width)
    if w >= 5:
        return 0.04
    if w >= 3:
        return 0.01
    if w > 0:
        return -0.03
    return 0.0


def legal_coefficient(title) -> float:
    return LEGAL_COEFFICIENTS.get(str(title or "").strip().lower(), 0.0)


def facade_width_coefficient(width) -> float:
    w = to_number(width)
    if w >= 8:
        return 0.07
    if w >= 5:
        return 0.04
    if w >= 3.5:
        return 0.0
    if w > 0:
        return -0.03
    return 0.0


def facade_count_coefficient(count) -> float:
    n = int(to_number(count))
    if n == 2:
        return 0.07
    if n == 3:
        return 0.10
    return 0.0


def unit_construction_price(stories) -> float:
    n = to_number(stories)
    if n >= 4:
        return UNIT_PRICE_HIGH_RISE
    if n >= 2:
        return UNIT_PRICE_MID_RISE
    if n >= 1:
        return UNIT_PRICE_LOW_RISE
    return 0.0


def wear_coefficient(age) -> float:
    a = to_number(age)
    if a < 3:
        return 0.10
    if a < 5:
        return 0.07
    if a < 10:
        return 0.02
    if a < 20:
        return -0.10
    return 0.0


def room_coefficient(bedrooms) -> float:
    n = to_number(bedrooms)
    if n < 2:
        return -0.03
    if n > 4:
        return 0.02
    return 0.0


def toilet_coefficient(bathrooms, stories) -> float:
    floors = to_number(stories)
    if floors <= 0:
        return 0.0
    return 0.02 if to_number(bathrooms) >= floors else -0.02


def extract_base_price(market_summary: str | None) -> float:
    """Average price per m² in VND, or 0 when the summary has none."""
    if not market_summary:
        return 0.0
    match = _AVERAGE_PRICE.search(market_summary)
    if not match:
        return 0.0
    # Commas are thousands separators: "1,250" -> 1250
    return to_number(match.group(1).rstrip(".,")) * 1_000_000


class PricingEngine:
    """
    Pure: same descriptor and summary in, same seed out. `reference_year`
    pins building age for reproducible results; it defaults to this year.
    """
    def __init__(self, reference_year: int | None = None):
        self.reference_year = reference_year

    def coefficients(self, d: PropertyDescriptor) -> CoefficientSet:
        return CoefficientSet(
            lane=lane_coefficient(d.lane_width),
            legal=legal_coefficient(d.legal),
            facade_width=facade_width_coefficient(d.facade_width),
            facade_count=facade_count_coefficient(d.facade_count),
        )

    def construction(self, d: PropertyDescriptor) -> ConstructionBreakdown:
        year = self.reference_year or date.today().year
        built = to_number(d.year_built)
        age = year - built if built > 0 else float("inf")
        return ConstructionBreakdown(
            floor_area=d.total_floor_area,
            unit_price=unit_construction_price(d.story_count),
            wear=wear_coefficient(age),
            room=room_coefficient(d.bedrooms),
            toilet=toilet_coefficient(d.bathrooms, d.story_count),
        )

    def price_from(self, d: PropertyDescriptor, market_summary: str | None) -> PricingSeed:
        coefficients = self.coefficients(d)
        base = extract_base_price(market_summary)
        lot_size = to_number(d.land_area)
        reasonable = base * lot_size * (1 + coefficients.total)

        c = self.construction(d)
        # Unit price is added to the unitless coefficients, not multiplied
        construction_price = c.floor_area * (1 + c.unit_price + c.wear + c.room + c.toilet)

        return PricingSeed(
            coefficients=coefficients,
            base_price_per_m2=base,
            lot_size=lot_size,
            reasonable_value=max(0, int(round(reasonable))),
            construction_price=max(0, int(round(construction_price))),
            construction=c,
        )
