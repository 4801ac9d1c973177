import re
from dataclasses import dataclass

from .base import AdminAddress
from .failover import ProviderFailoverClient
from ..models.base import PropertyDescriptor

NO_SEARCH_DATA = "No listing search data available."

_PRICE = re.compile(r"(\d+(?:[.,]\d+)?)\s*(triệu|tỷ|tr\b|million|billion)", re.IGNORECASE)
_URL = re.compile(r"https?://[^\s\"'<>)\]]+")
_TREND_WORDS = ("tăng", "giảm", "ổn định", "biến động", "xu hướng",
                "increase", "decrease", "rising", "falling", "stable", "trend")

_TYPE_LABELS = {
    "apartment": "apartment",
    "lane_house": "house in an alley",
    "town_house": "street-front town house",
    "land": "land plot",
    "villa": "villa",
}


@dataclass(frozen=True)
class SearchCommentary:
    text: str
    source_urls: tuple[str, ...] = ()
    provider_id: str | None = None


def build_search_messages(address: AdminAddress, d: PropertyDescriptor) -> list[dict[str, str]]:
    kind = _TYPE_LABELS.get(d.property_type, "property")
    where = address.label() or d.address
    street = f" on {d.street}" if d.street else ""
    return [
        {
            "role": "system",
            "content": (
                "You are a Vietnamese real estate market researcher. Search current listings and "
                "recent transactions and report asking prices in VND with their sources. Be concise."
            ),
        },
        {
            "role": "user",
            "content": (
                f"Find current listing prices for a {kind}{street} in {where}. "
                f"Comparable size: land {d.land_area} m², {d.story_count} stories, facade {d.facade_width} m. "
                "Summarise the typical price per m², the price range of similar listings and the "
                "recent price direction in this area."
            ),
        },
    ]


def extract_urls(text: str, limit: int = 10) -> list[str]:
    out: list[str] = []
    for url in _URL.findall(text or ""):
        url = url.rstrip(".,;")
        if url not in out:
            out.append(url)
    return out[:limit]


def format_commentary(content: str, where: str) -> str:
    """
    Raw search answer plus the quoted prices and trend sentences pulled out
    of it, so prompts downstream see the figures first.
    """
    prices = [" ".join(m) for m in _PRICE.findall(content)][:3]
    trend_lines = [
        line.strip() for line in content.splitlines()
        if line.strip() and any(word in line.lower() for word in _TREND_WORDS)
    ][:2]
    parts = [f"Listing search for {where}:", content.strip()]
    if prices:
        parts.append("Quoted prices: " + "; ".join(prices))
    if trend_lines:
        parts.append("Market direction: " + " ".join(trend_lines))
    return "\n\n".join(parts)


class ListingSearchProvider:
    """
    Listing search through the AI providers' web-search models. Called once
    per valuation; the commentary is shared by every downstream prompt.
    """
    def __init__(self, failover: ProviderFailoverClient, max_tokens: int = 500):
        self.failover = failover
        self.max_tokens = max_tokens

    async def search(self, address: AdminAddress, d: PropertyDescriptor) -> SearchCommentary:
        result = await self.failover.call(
            build_search_messages(address, d), purpose="search", temperature=0.2, max_tokens=self.max_tokens
        )
        if not result.success:
            raise result.as_error("listing search")
        urls = list(result.citations) or extract_urls(result.content)
        return SearchCommentary(
            text=format_commentary(result.content, address.label() or d.address),
            source_urls=tuple(urls),
            provider_id=result.provider_id,
        )
