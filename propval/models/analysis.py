from .base import AnalysisScores, PropertyDescriptor, SharedContext
from .refinement import describe_context, describe_property, extract_json
from ..core.errors import ParseError
from ..core.utils import to_number
from ..data.failover import ProviderFailoverClient

SCORE_FIELDS = ("locationScore", "legalityScore", "liquidityScore", "evaluationScore", "dividendScore")


def build_analysis_messages(d: PropertyDescriptor, ctx: SharedContext) -> list[dict[str, str]]:
    return [
        {
            "role": "system",
            "content": (
                "You are a real estate investment analyst. Respond ONLY with a JSON object with numeric "
                "fields locationScore, legalityScore, liquidityScore, evaluationScore, dividendScore "
                "(each 0-10) and descriptions, a list of five short sentences, one per score."
            ),
        },
        {"role": "user", "content": "Property:\n" + describe_property(d) + "\n\n" + describe_context(ctx)},
    ]


def parse_scores(content: str) -> AnalysisScores:
    data = extract_json(content, "analysis")
    # Some models nest the scores under radarScore
    scores = data.get("radarScore", data)
    if not isinstance(scores, dict):
        raise ParseError("analysis scores are not an object", source="analysis")
    missing = [k for k in SCORE_FIELDS if k not in scores]
    if missing:
        raise ParseError(f"analysis response missing keys: {missing}", source="analysis")
    values = [min(10.0, max(0.0, to_number(scores[k]))) for k in SCORE_FIELDS]
    descriptions = scores.get("descriptions") or data.get("descriptions") or []
    if not isinstance(descriptions, list):
        descriptions = [str(descriptions)]
    return AnalysisScores(*values, descriptions=tuple(str(x) for x in descriptions))


class AnalysisClient:
    """Radar-chart scores for the property, from the same SharedContext as the valuation."""
    def __init__(self, failover: ProviderFailoverClient, max_tokens: int = 800):
        self.failover = failover
        self.max_tokens = max_tokens

    async def analyze(self, d: PropertyDescriptor, ctx: SharedContext) -> AnalysisScores:
        result = await self.failover.call(
            build_analysis_messages(d, ctx), purpose="analysis", temperature=0.2, max_tokens=self.max_tokens
        )
        if not result.success:
            raise result.as_error("analysis")
        return parse_scores(result.content)
