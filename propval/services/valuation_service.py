import asyncio
import logging

from .context import PipelineRun, RunStatus
from .orchestrator import Orchestrator
from ..core.cache import Cache
from ..core.config import Settings
from ..core.errors import ErrorKind, Timeout, ValidationError
from ..data.failover import ProviderFailoverClient
from ..data.gov_price_client import gov_price_client
from ..data.location_client import location_client
from ..data.search_client import ListingSearchProvider
from ..data.trends_client import trends_client
from ..data.utilities_client import utilities_client
from ..geo.distance import DistanceAnalyzer
from ..models.analysis import AnalysisClient
from ..models.base import (
    AnalysisScores, PricingSeed, PropertyDescriptor, SharedContext, ValuationEstimate, apply_defaults,
)
from ..models.fallback import FallbackSynthesizer
from ..models.pricing_engine import PricingEngine
from ..models.refinement import AIRefinementClient, seed_estimate
from ..schemas import ValuationRequest

logger = logging.getLogger(__name__)

DISCLAIMER = "This valuation is an estimate and not a financial appraisal."


class ValuationService:
    """
    Runs one valuation end to end:
      validate → Orchestrator (fan-out, merge, pricing seed)
               → refinement + analysis in parallel over the same context
               → fallback estimate if the valuation model is unreachable
    Every upstream failure short of a broken merge still produces a response,
    flagged as degraded.
    """
    def __init__(self, settings: Settings, *, orchestrator: Orchestrator, refinement: AIRefinementClient,
                 analysis: AnalysisClient, fallback: FallbackSynthesizer | None = None,
                 failover: ProviderFailoverClient | None = None):
        self.settings = settings
        self.orchestrator = orchestrator
        self.refinement = refinement
        self.analysis = analysis
        self.fallback = fallback or FallbackSynthesizer()
        self.failover = failover

    @classmethod
    def from_settings(cls, settings: Settings, cache: Cache | None = None) -> "ValuationService":
        failover = ProviderFailoverClient.from_settings(settings)
        orchestrator = Orchestrator(
            settings,
            location=location_client(settings),
            trends=trends_client(settings, cache),
            utilities=utilities_client(settings),
            gov_prices=gov_price_client(settings),
            search=ListingSearchProvider(failover),
            distance=DistanceAnalyzer(),
            pricing=PricingEngine(),
        )
        return cls(
            settings,
            orchestrator=orchestrator,
            refinement=AIRefinementClient(failover),
            analysis=AnalysisClient(failover),
            failover=failover,
        )

    def validate(self, body: ValuationRequest) -> PropertyDescriptor:
        """Reject unusable requests before any upstream call is made."""
        details = body.property_details.to_descriptor_fields()
        if body.latitude is None or body.longitude is None:
            if not (body.options.allow_address_only and details.get("city")):
                raise ValidationError("latitude and longitude are required")
        if body.latitude is not None and not -90 <= body.latitude <= 90:
            raise ValidationError("latitude must be between -90 and 90")
        if body.longitude is not None and not -180 <= body.longitude <= 180:
            raise ValidationError("longitude must be between -180 and 180")
        if not (body.auth_token or "").strip():
            raise ValidationError("auth_token is required")
        return apply_defaults(details, latitude=body.latitude, longitude=body.longitude)

    async def value_property(self, body: ValuationRequest, request_id: str | None = None) -> dict:
        descriptor = self.validate(body)
        run = PipelineRun(request_id=request_id) if request_id else PipelineRun()
        try:
            return await asyncio.wait_for(
                self._run(descriptor, body, run), timeout=self.settings.PIPELINE_TIMEOUT_SECONDS
            )
        except asyncio.TimeoutError:
            run.finish(RunStatus.FAILED)
            raise Timeout(
                f"valuation did not finish within {self.settings.PIPELINE_TIMEOUT_SECONDS:g}s", source="pipeline"
            ) from None

    async def _run(self, d: PropertyDescriptor, body: ValuationRequest, run: PipelineRun) -> dict:
        try:
            result = await self.orchestrator.run(d, run, token=body.auth_token)
        except Exception:
            # Fan-out never raises, so this is a merge or pricing fault
            logger.exception("valuation pipeline failed", extra={"request_id": run.request_id})
            run.finish(RunStatus.FAILED)
            return self._failed_payload(run)

        ctx, seed = result.context, result.seed
        include_analysis = body.options.include_analysis
        (estimate, source), scores = await asyncio.gather(
            self._valuation(d, ctx, seed, run),
            self._analysis(d, ctx, run) if include_analysis else _none(),
        )
        run.finish()
        return self._payload(run, ctx, seed, estimate, source, scores)

    async def _valuation(self, d: PropertyDescriptor, ctx: SharedContext, seed: PricingSeed,
                         run: PipelineRun) -> tuple[ValuationEstimate, str]:
        outcome = await run.settle("valuation", self.refinement.refine(d, ctx, seed))
        if not outcome.ok:
            if outcome.error.kind is ErrorKind.PARSE_ERROR:
                return seed_estimate(seed), "seed"
            return self.fallback.synthesize(d), "fallback"
        refined = outcome.value
        if refined.error is not None:
            run.fail_stage("valuation", refined.error)
        return refined.estimate, refined.source

    async def _analysis(self, d: PropertyDescriptor, ctx: SharedContext, run: PipelineRun) -> AnalysisScores | None:
        outcome = await run.settle("analysis", self.analysis.analyze(d, ctx))
        return outcome.value if outcome.ok else None

    def _base_payload(self, run: PipelineRun) -> dict:
        return {
            "request_id": run.request_id,
            "status": run.status.value,
            "currency": self.settings.DEFAULT_CURRENCY,
            "stage_errors": run.error_messages(),
            "performance": {"total_time_ms": run.total_ms, "per_stage_ms": dict(run.stage_ms)},
            "disclaimer": DISCLAIMER,
        }

    def _failed_payload(self, run: PipelineRun) -> dict:
        return {
            **self._base_payload(run),
            "success": False,
            "degraded": True,
            "address": None,
            "valuation": None,
            "valuation_source": None,
            "analysis_scores": None,
            "distance_analysis": None,
            "pricing": None,
            "sources": [],
        }

    def _payload(self, run: PipelineRun, ctx: SharedContext, seed: PricingSeed, estimate: ValuationEstimate,
                 source: str, scores: AnalysisScores | None) -> dict:
        address = ctx.address
        return {
            **self._base_payload(run),
            "success": True,
            "degraded": run.status is RunStatus.DEGRADED,
            "address": {
                "city": address.city,
                "district": address.district,
                "ward": address.ward,
                "formatted_address": address.label(),
            },
            "valuation": estimate.as_dict(),
            "valuation_source": source,
            "analysis_scores": scores.as_dict() if scores else None,
            "distance_analysis": ctx.distance.as_dict() if ctx.distance else None,
            "pricing": {
                "base_price_per_m2": int(round(seed.base_price_per_m2)),
                "coefficients": seed.coefficients.as_dict(),
                "reasonable_value": seed.reasonable_value,
                "construction_price": seed.construction_price,
            },
            "sources": list(ctx.source_urls),
        }

    def providers_status(self) -> dict:
        if self.failover is None:
            return {"primary": None, "secondary": None, "available": False}
        return self.failover.status()

    async def aclose(self):
        if self.failover is not None:
            await self.failover.aclose()


async def _none():
    return None
