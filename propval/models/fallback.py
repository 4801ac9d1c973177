from .base import PropertyDescriptor, ValuationEstimate
from ..core.utils import fnv1a_32, money_band, seeded_rand, to_number

FALLBACK_BASE_PRICE_PER_M2 = 65_000_000
LAND_PRICE_RATIO = 0.7


class FallbackSynthesizer:
    """
    Placeholder estimate used when the valuation service cannot be reached.
    A flat rate per m² with a location multiplier in [0.8, 1.2); the jitter
    is seeded from the property so retries return the same figures. Results
    are always reported as degraded.
    """
    def __init__(self, base_price_per_m2: float = FALLBACK_BASE_PRICE_PER_M2):
        self.base_price_per_m2 = base_price_per_m2

    def location_multiplier(self, d: PropertyDescriptor) -> float:
        return 0.8 + seeded_rand(fnv1a_32(d.seed_key()), 1)[0] * 0.4

    def synthesize(self, d: PropertyDescriptor) -> ValuationEstimate:
        seed = fnv1a_32(d.seed_key())
        multiplier = self.location_multiplier(d)
        house_price = to_number(d.house_area) * self.base_price_per_m2 * multiplier
        land_price = to_number(d.land_area) * self.base_price_per_m2 * LAND_PRICE_RATIO * multiplier
        reasonable = int(round(house_price + land_price))
        low, high = money_band(reasonable, seed)
        return ValuationEstimate.bounded(low, reasonable, high, house_price)
