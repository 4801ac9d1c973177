"""AI refinement of the deterministic pricing seed."""
import json
import re
from dataclasses import dataclass
from typing import Any

from .base import PricingSeed, PropertyDescriptor, SharedContext, ValuationEstimate
from ..core.errors import ParseError, PipelineError
from ..core.utils import to_number
from ..data.failover import ProviderFailoverClient

REQUIRED_FIELDS = ("lowValue", "reasonableValue", "highValue")
# Band applied around the seed when the AI answer cannot be used
SEED_SPREAD = 0.10

_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def extract_json(content: str, source: str) -> dict[str, Any]:
    """First JSON object in a completion, tolerating code fences and prose."""
    fenced = _FENCE.search(content or "")
    candidate = fenced.group(1) if fenced else content or ""
    match = _OBJECT.search(candidate)
    if not match:
        raise ParseError(f"{source} response contains no JSON object", source=source)
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise ParseError(f"{source} response is not valid JSON", source=source) from exc
    if not isinstance(data, dict):
        raise ParseError(f"{source} response is not a JSON object", source=source)
    return data


def describe_property(d: PropertyDescriptor) -> str:
    lines = [
        f"- Type: {d.property_type}",
        f"- Land area: {d.land_area} m²; floor area per story: {d.house_area} m²; stories: {d.story_count}",
        f"- Facade width: {d.facade_width} m; facades: {d.facade_count}; lane width: {d.lane_width} m",
        f"- Bedrooms: {d.bedrooms}; bathrooms: {d.bathrooms}",
        f"- Legal title: {d.legal}; year built: {d.year_built}",
    ]
    if d.latitude is not None:
        lines.append(f"- Coordinates: {d.latitude}, {d.longitude}")
    return "\n".join(lines)


def describe_context(ctx: SharedContext) -> str:
    """The fan-out results as prompt sections. Shared by every AI stage."""
    sections = [
        f"Address: {ctx.address.label() or 'unknown'}",
        f"Market trend:\n{ctx.market_summary}",
        f"Listing search:\n{ctx.search_commentary}",
    ]
    if ctx.gov_reference_price:
        sections.append(f"Government reference land price:\n{ctx.gov_reference_price}")
    if ctx.distance:
        sections.append(f"Distance to administrative centres:\n{ctx.distance.describe()}")
    if ctx.amenities:
        sections.append("Amenities: " + "; ".join(ctx.amenities))
    return "\n\n".join(sections)


def build_refinement_messages(d: PropertyDescriptor, ctx: SharedContext, seed: PricingSeed) -> list[dict[str, str]]:
    if seed.reasonable_value > 0:
        baseline = (
            f"Coefficient baseline: reasonable value {seed.reasonable_value:,} VND from "
            f"{seed.base_price_per_m2:,.0f} VND/m² x {seed.lot_size} m² with coefficients "
            f"{json.dumps(seed.coefficients.as_dict())}; construction value {seed.construction_price:,} VND. "
            "Adjust this baseline with the evidence above rather than starting over."
        )
    else:
        baseline = (
            "No coefficient baseline is available (no market price for the area); "
            f"construction value {seed.construction_price:,} VND."
        )
    return [
        {
            "role": "system",
            "content": (
                "You are a licensed Vietnamese real estate appraiser. Respond ONLY with a JSON object "
                "with integer VND fields lowValue, reasonableValue, highValue, constructionPrice "
                "where lowValue <= reasonableValue <= highValue."
            ),
        },
        {
            "role": "user",
            "content": "\n\n".join([
                "Property:\n" + describe_property(d),
                describe_context(ctx),
                baseline,
            ]),
        },
    ]


def parse_estimate(content: str, seed: PricingSeed) -> ValuationEstimate:
    data = extract_json(content, "valuation")
    missing = [k for k in REQUIRED_FIELDS if k not in data]
    if missing:
        raise ParseError(f"valuation response missing keys: {missing}", source="valuation")
    values = [to_number(data[k]) for k in REQUIRED_FIELDS]
    if any(v <= 0 for v in values):
        raise ParseError("valuation response has non-positive values", source="valuation")
    construction = to_number(data.get("constructionPrice")) or seed.construction_price
    return ValuationEstimate.bounded(*values, construction)


def seed_estimate(seed: PricingSeed) -> ValuationEstimate:
    mid = seed.reasonable_value
    return ValuationEstimate.bounded(mid * (1 - SEED_SPREAD), mid, mid * (1 + SEED_SPREAD), seed.construction_price)


@dataclass(frozen=True)
class RefinementOutcome:
    estimate: ValuationEstimate
    source: str                      # "ai" | "seed"
    provider_id: str | None = None
    error: PipelineError | None = None


class AIRefinementClient:
    """
    Asks the AI valuation model to adjust the seed. A provider failure is
    raised (the caller synthesizes a fallback); an unusable answer is not,
    the seed itself becomes the estimate.
    """
    def __init__(self, failover: ProviderFailoverClient, max_tokens: int = 800):
        self.failover = failover
        self.max_tokens = max_tokens

    async def refine(self, d: PropertyDescriptor, ctx: SharedContext, seed: PricingSeed) -> RefinementOutcome:
        result = await self.failover.call(
            build_refinement_messages(d, ctx, seed), purpose="valuation", temperature=0.0,
            max_tokens=self.max_tokens,
        )
        if not result.success:
            raise result.as_error("valuation")
        try:
            estimate = parse_estimate(result.content, seed)
        except ParseError as exc:
            return RefinementOutcome(seed_estimate(seed), "seed", result.provider_id, exc)
        return RefinementOutcome(estimate, "ai", result.provider_id)
