from dataclasses import dataclass
from typing import Optional

import pytest
from httpx import ASGITransport, AsyncClient

from propval.core.config import Settings
from propval.data.failover import ProviderFailoverClient
from propval.data.search_client import ListingSearchProvider
from propval.main import create_app
from propval.models.analysis import AnalysisClient
from propval.models.pricing_engine import PricingEngine
from propval.models.refinement import AIRefinementClient
from propval.services.orchestrator import Orchestrator
from propval.services.valuation_service import ValuationService
from tests.fakes import FakeChatProvider, FakeGovPrice, FakeLocation, FakeTrends, FakeUtilities


def make_settings(**overrides) -> Settings:
    return Settings.from_env({}).model_copy(update=overrides)


@dataclass
class Harness:
    settings: Settings
    location: FakeLocation
    trends: FakeTrends
    utilities: FakeUtilities
    gov: FakeGovPrice
    primary: Optional[FakeChatProvider]
    secondary: Optional[FakeChatProvider]
    failover: ProviderFailoverClient
    orchestrator: Orchestrator
    service: ValuationService

    def leaf_calls(self) -> int:
        calls = len(self.location.calls) + len(self.trends.calls) + len(self.utilities.calls) + len(self.gov.calls)
        for provider in (self.primary, self.secondary):
            if provider is not None:
                calls += len(provider.calls)
        return calls


@pytest.fixture
def harness_factory():
    def _factory(
        *,
        location: Optional[FakeLocation] = None,
        trends: Optional[FakeTrends] = None,
        utilities: Optional[FakeUtilities] = None,
        gov: Optional[FakeGovPrice] = None,
        primary: Optional[FakeChatProvider] = "default",
        secondary: Optional[FakeChatProvider] = None,
        **settings_overrides,
    ) -> Harness:
        settings = make_settings(**settings_overrides)
        if primary == "default":
            primary = FakeChatProvider("primary", vendor="proxy")
        failover = ProviderFailoverClient(primary=primary, secondary=secondary)
        location = location or FakeLocation()
        trends = trends or FakeTrends()
        utilities = utilities or FakeUtilities()
        gov = gov or FakeGovPrice()
        orchestrator = Orchestrator(
            settings,
            location=location,
            trends=trends,
            utilities=utilities,
            gov_prices=gov,
            search=ListingSearchProvider(failover),
            pricing=PricingEngine(reference_year=2025),
        )
        service = ValuationService(
            settings,
            orchestrator=orchestrator,
            refinement=AIRefinementClient(failover),
            analysis=AnalysisClient(failover),
            failover=failover,
        )
        return Harness(settings, location, trends, utilities, gov, primary, secondary, failover, orchestrator, service)

    return _factory


@pytest.fixture
def harness(harness_factory) -> Harness:
    return harness_factory()


@pytest.fixture
async def client(harness):
    app = create_app(harness.settings, service=harness.service)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
