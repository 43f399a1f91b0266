from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel


# -------------------------------------------------
# ENUMERATED VALUES (wire values stay pt-BR)
# -------------------------------------------------
SingleFormat = Literal["reels", "post", "stories"]
ContentFormat = Literal["reels", "post", "stories", "pacote"]
Exclusivity = Literal["nenhuma", "7d", "15d", "30d", "365d"]
UsageRights = Literal["organico", "midiapaga", "global"]
PaidMediaDuration = Literal["7d", "15d", "30d", "90d", "180d", "365d"]
Complexity = Literal["simples", "roteiro", "profissional"]
Authority = Literal["padrao", "ascensao", "autoridade", "celebridade"]
Seasonality = Literal["normal", "alta", "baixa"]
BrandSize = Literal["pequena", "media", "grande"]
ImageRisk = Literal["baixo", "medio", "alto"]
StrategicGain = Literal["baixo", "medio", "alto"]
ContentModel = Literal["publicidade_perfil", "ugc_whitelabel"]
TravelTier = Literal["local", "nacional", "internacional"]
EventDurationHours = Literal[2, 4, 8]
CpmSource = Literal["dynamic", "seed"]
ConfidenceBand = Literal["baixa", "media", "alta"]
LinkQuality = Literal["high", "mixed", "low"]

DEFAULT_PAID_MEDIA_DURATION = "30d"


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FrozenModel(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# -------------------------------------------------
# DEAL PARAMETERS
# -------------------------------------------------
class FormatQuantities(FrozenModel):
    reels: int = Field(0, ge=0, le=20)
    post: int = Field(0, ge=0, le=20)
    stories: int = Field(0, ge=0, le=20)

    def total(self) -> int:
        return self.reels + self.post + self.stories

    def active_formats(self) -> list:
        return [name for name in ("reels", "post", "stories") if getattr(self, name) > 0]

    @classmethod
    def for_format(cls, format_name: str) -> "FormatQuantities":
        if format_name in ("reels", "post", "stories"):
            return cls(**{format_name: 1})
        return cls(reels=1)


class EventDetails(FrozenModel):
    duration_hours: EventDurationHours = 4
    travel_tier: TravelTier = "local"
    hotel_nights: int = Field(0, ge=0, le=20)


class CommercialTerms(CamelModel):
    """
    Terms shared by both deal shapes.
    Brand-risk fields only act when the brand-risk module is on.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )

    exclusivity: Exclusivity
    usage_rights: UsageRights
    paid_media_duration: Optional[PaidMediaDuration] = Field(None, validate_default=True)
    repost_tiktok: bool = Field(False, alias="repostTikTok")
    instagram_collab: bool = False
    complexity: Complexity = "simples"
    authority: Authority = "padrao"
    seasonality: Seasonality = "normal"

    brand_size: BrandSize = "media"
    image_risk: ImageRisk = "medio"
    strategic_gain: StrategicGain = "baixo"
    content_model: ContentModel = "publicidade_perfil"
    allow_strategic_waiver: bool = False

    @field_validator("paid_media_duration", mode="after")
    @classmethod
    def _resolve_paid_media_duration(cls, value: Optional[str], info: ValidationInfo) -> Optional[str]:
        # organic deals never carry a paid-media window; legacy paid calls get 30d
        usage_rights = info.data.get("usage_rights")
        if usage_rights is None or usage_rights == "organico":
            return None
        return value or DEFAULT_PAID_MEDIA_DURATION


class ContentDeal(CommercialTerms):
    delivery_type: Literal["conteudo"] = "conteudo"
    format: Optional[ContentFormat] = None
    format_quantities: Optional[FormatQuantities] = None


class EventDeal(CommercialTerms):
    delivery_type: Literal["evento"] = "evento"
    format: Literal["evento"] = "evento"
    event_details: EventDetails = Field(default_factory=EventDetails)
    event_coverage_quantities: Optional[FormatQuantities] = None


def _delivery_type_tag(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        tag = value.get("deliveryType", value.get("delivery_type"))
        if tag is None:
            # legacy payloads carry only a format
            return "evento" if value.get("format") == "evento" else "conteudo"
        return tag
    return getattr(value, "delivery_type", None)


DealParameters = Annotated[
    Union[
        Annotated[ContentDeal, Tag("conteudo")],
        Annotated[EventDeal, Tag("evento")],
    ],
    Discriminator(_delivery_type_tag),
]


# -------------------------------------------------
# RESOLVER SNAPSHOTS
# -------------------------------------------------
class CreatorMetricsSnapshot(FrozenModel):
    avg_reach: float
    avg_engagement_rate: float = 0.0
    profile_segment: str = "default"


class CpmQuote(FrozenModel):
    value: float
    source: CpmSource
    segment: str = "default"


class CalibrationSnapshot(FrozenModel):
    factor_raw: float = 1.0
    confidence: float = 0.0
    confidence_band: ConfidenceBand = "baixa"
    segment_sample_size: int = 0
    creator_sample_size: int = 0
    manual_link_rate: float = 0.0
    link_quality: LinkQuality = "low"
    mad: float = 0.0
    window_days_segment: int = 180
    window_days_creator: int = 365


# -------------------------------------------------
# PRICING RESULT
# -------------------------------------------------
class PriceBand(FrozenModel):
    estrategico: float
    justo: float
    premium: float


class PricingBreakdown(FrozenModel):
    content_units: float = 0.0
    content_justo: float = 0.0
    event_presence_justo: float = 0.0
    coverage_units: float = 0.0
    coverage_justo: float = 0.0
    travel_cost: float = 0.0
    hotel_cost: float = 0.0
    logistics_suggested: float = 0.0
    logistics_included_in_cache: Literal[False] = False


class PricingMetrics(FrozenModel):
    reach: int
    engagement: float
    profile_segment: str


class CalibrationOutcome(FrozenModel):
    enabled: bool = False
    base_justo: float = 0.0
    factor_raw: float = 1.0
    factor_applied: float = 1.0
    guardrail_applied: bool = False
    confidence: float = 0.0
    confidence_band: ConfidenceBand = "baixa"
    segment_sample_size: int = 0
    creator_sample_size: int = 0
    window_days_segment: int = 180
    window_days_creator: int = 365
    low_confidence_range_expanded: bool = False
    link_quality: LinkQuality = "low"


class BrandRiskOutcome(FrozenModel):
    enabled: bool = False
    multiplier: float = 1.0
    floor_applied: bool = False
    waiver_applied: bool = False


class PricingResult(FrozenModel):
    result: PriceBand
    breakdown: PricingBreakdown
    metrics: PricingMetrics
    calibration: CalibrationOutcome
    brand_risk: BrandRiskOutcome
    params: DealParameters
    cpm_applied: float
    cpm_source: CpmSource
    explanation: str


# -------------------------------------------------
# API PAYLOADS
# -------------------------------------------------
class PricingFlags(FrozenModel):
    brand_risk_enabled: bool = False
    calibration_enabled: bool = True


class PricingRequest(CamelModel):
    user_id: str
    profile_segment: Optional[str] = None
    params: DealParameters
