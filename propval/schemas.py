from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .geo.distance import parse_dms


class PropertyDetails(BaseModel):
    """Caller-supplied property facts. Accepts the listing platform's camelCase keys."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str | None = None
    address: str | None = None
    city: str | None = None
    district: str | None = None
    ward: str | None = None
    street: str | None = None
    administrative_level: int | None = Field(default=None, alias="administrativeLevel")
    land_area: float | None = Field(default=None, alias="landArea")
    house_area: float | None = Field(default=None, alias="houseArea")
    lane_width: float | None = Field(default=None, alias="laneWidth")
    facade_width: float | None = Field(default=None, alias="facadeWidth")
    facade_count: int | None = Field(default=None, alias="facadeCount")
    story_number: int | None = Field(default=None, alias="storyNumber")
    bedrooms: int | None = Field(default=None, alias="bedRoom")
    bathrooms: int | None = Field(default=None, alias="bathRoom")
    legal: str | None = None
    year_built: int | None = Field(default=None, alias="yearBuilt")
    amenities: list[str] | None = None

    def to_descriptor_fields(self) -> dict[str, Any]:
        data = self.model_dump(exclude_none=True)
        renames = {"type": "property_type", "story_number": "story_count"}
        return {renames.get(k, k): v for k, v in data.items()}


class RequestOptions(BaseModel):
    include_analysis: bool = True
    # Value from caller address fields alone when coordinates are unknown
    allow_address_only: bool = False


class ValuationRequest(BaseModel):
    latitude: float | None = None
    longitude: float | None = None
    property_details: PropertyDetails = Field(default_factory=PropertyDetails)
    auth_token: str | None = None
    options: RequestOptions = Field(default_factory=RequestOptions)

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _accept_dms(cls, value):
        # 21°01'41.9"N style strings are converted; plain numbers pass through
        if isinstance(value, str) and "°" in value:
            parsed = parse_dms(value)
            if parsed is None:
                raise ValueError(f"unreadable coordinate {value!r}")
            return parsed
        return value


class AddressOut(BaseModel):
    city: str
    district: str
    ward: str
    formatted_address: str


class ValuationOut(BaseModel):
    low_value: int = Field(ge=0)
    reasonable_value: int = Field(ge=0)
    high_value: int = Field(ge=0)
    construction_price: int = Field(ge=0)


class AnalysisScoresOut(BaseModel):
    location_score: float
    legality_score: float
    liquidity_score: float
    evaluation_score: float
    dividend_score: float
    descriptions: list[str] = []


class CenterOut(BaseModel):
    name: str
    distance_km: float


class DistanceOut(BaseModel):
    to_city_center: CenterOut | None
    to_district_center: CenterOut | None
    accessibility_tier: str
    location_advantage: str
    market_impact: str


class PricingOut(BaseModel):
    base_price_per_m2: int
    coefficients: dict[str, float]
    reasonable_value: int
    construction_price: int


class PerformanceOut(BaseModel):
    total_time_ms: float | None
    per_stage_ms: dict[str, float]


class ValuationResponse(BaseModel):
    request_id: str
    success: bool
    degraded: bool
    status: str
    currency: str = "VND"
    address: AddressOut | None
    valuation: ValuationOut | None
    valuation_source: str | None      # ai | seed | fallback
    analysis_scores: AnalysisScoresOut | None
    distance_analysis: DistanceOut | None
    pricing: PricingOut | None
    sources: list[str]
    stage_errors: dict[str, str]
    performance: PerformanceOut
    disclaimer: str
