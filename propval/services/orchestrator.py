import asyncio
import logging
from dataclasses import dataclass

from .context import PipelineRun, StageOutcome
from ..core.config import Settings
from ..core.errors import PipelineError
from ..data.base import (
    AdminAddress, GeoPoint, GovPriceProvider, LocationResolver, MarketTrendProvider, UtilitiesProvider,
)
from ..data.gov_price_client import format_reference_price
from ..data.search_client import NO_SEARCH_DATA, ListingSearchProvider
from ..data.trends_client import format_market_summary
from ..data.utilities_client import amenities_from_utilities, merge_amenities
from ..geo.distance import DistanceAnalyzer
from ..models.base import PricingSeed, PropertyDescriptor, SharedContext
from ..models.pricing_engine import PricingEngine

logger = logging.getLogger(__name__)

# Used when neither coordinates nor caller fields name a locality
DEFAULT_CITY = "ha_noi"
DEFAULT_DISTRICT = "dong_da"


@dataclass(frozen=True)
class OrchestratorResult:
    context: SharedContext
    seed: PricingSeed
    stage_errors: dict[str, PipelineError]


class Orchestrator:
    """
    Fans out every leaf call for one valuation, waits for all of them to
    settle, and merges what came back into one SharedContext:

      location ──┬── market trend
                 ├── listing search (once, shared downstream)
                 ├── government price
                 └── distance analysis
      utilities (coordinates only)

    All tasks start together; the address-dependent ones wait on the single
    location task. Each leaf has its own timeout and a failed leaf is
    replaced by a neutral default, never failing the run.
    """
    def __init__(self, settings: Settings, *, location: LocationResolver, trends: MarketTrendProvider,
                 utilities: UtilitiesProvider, gov_prices: GovPriceProvider, search: ListingSearchProvider,
                 distance: DistanceAnalyzer | None = None, pricing: PricingEngine | None = None):
        self.location = location
        self.trends = trends
        self.utilities = utilities
        self.gov_prices = gov_prices
        self.search = search
        self.distance = distance or DistanceAnalyzer()
        self.pricing = pricing or PricingEngine()
        # Listing search has no outer bound: each AI provider tier carries its own
        self.timeouts: dict[str, float | None] = {
            "location": settings.LOCATION_TIMEOUT_SECONDS,
            "market_trend": settings.TRENDS_TIMEOUT_SECONDS,
            "utilities": settings.UTILITIES_TIMEOUT_SECONDS,
            "gov_price": settings.GOV_PRICE_TIMEOUT_SECONDS,
            "listing_search": None,
            "distance": None,
        }

    @staticmethod
    def caller_address(d: PropertyDescriptor) -> AdminAddress:
        point = GeoPoint(d.latitude, d.longitude) if d.has_coordinates else None
        return AdminAddress(
            city=d.city or DEFAULT_CITY,
            district=d.district or DEFAULT_DISTRICT,
            ward=d.ward or "",
            formatted_address=d.address,
            point=point,
        )

    async def _resolve_address(self, d: PropertyDescriptor, token: str | None) -> AdminAddress:
        resolved = await self.location.resolve(GeoPoint(d.latitude, d.longitude), token=token)
        fallback = self.caller_address(d)
        # Keep caller fields for anything the resolver left blank
        return AdminAddress(
            city=resolved.city or fallback.city,
            district=resolved.district or fallback.district,
            ward=resolved.ward or fallback.ward,
            formatted_address=resolved.formatted_address or fallback.formatted_address,
            point=resolved.point or fallback.point,
        )

    async def _skipped(self, stage: str, value=None) -> StageOutcome:
        return StageOutcome(stage, value=value)

    async def run(self, d: PropertyDescriptor, run: PipelineRun, token: str | None = None) -> OrchestratorResult:
        fallback_address = self.caller_address(d)

        if d.has_coordinates:
            location_task = asyncio.ensure_future(
                run.settle("location", self._resolve_address(d, token), self.timeouts["location"])
            )
        else:
            location_task = asyncio.ensure_future(self._skipped("location", fallback_address))

        async def address() -> AdminAddress:
            return (await location_task).value_or(fallback_address)

        async def after_address(stage: str, call) -> StageOutcome:
            addr = await address()
            return await run.settle(stage, call(addr), self.timeouts[stage])

        async def analyze_distance(addr: AdminAddress):
            return self.distance.analyze(d.latitude, d.longitude, addr.formatted_address,
                                         city_hint=addr.city, district_hint=addr.district)

        trend_task = after_address(
            "market_trend", lambda addr: self.trends.fetch(addr.city, addr.district, d.category, token=token)
        )
        search_task = after_address("listing_search", lambda addr: self.search.search(addr, d))
        gov_task = after_address("gov_price", lambda addr: self.gov_prices.lookup(addr, d.street))
        if d.has_coordinates:
            distance_task = after_address("distance", analyze_distance)
            utilities_task = run.settle(
                "utilities",
                self.utilities.nearby(GeoPoint(d.latitude, d.longitude), token=token),
                self.timeouts["utilities"],
            )
        else:
            distance_task = self._skipped("distance")
            utilities_task = self._skipped("utilities", [])

        location, trend, search, gov, distance, utilities = await asyncio.gather(
            location_task, trend_task, search_task, gov_task, distance_task, utilities_task
        )

        market = trend.value if trend.ok else None
        commentary = search.value if search.ok else None
        context = SharedContext(
            address=location.value_or(fallback_address),
            market_summary=format_market_summary(market),
            market_available=market is not None and bool(market.points),
            trend=market,
            search_commentary=commentary.text if commentary else NO_SEARCH_DATA,
            source_urls=commentary.source_urls if commentary else (),
            gov_reference_price=format_reference_price(gov.value) if gov.ok and gov.value else None,
            distance=distance.value if distance.ok else None,
            amenities=merge_amenities(d.amenities, amenities_from_utilities(utilities.value_or([]))),
        )
        if not context.market_available:
            logger.info("no market data for %s/%s", context.address.city, context.address.district)

        seed = self.pricing.price_from(d, context.market_summary)
        return OrchestratorResult(context=context, seed=seed, stage_errors=dict(run.stage_errors))
