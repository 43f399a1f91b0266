from typing import List, Literal, Optional, Union

from pydantic import Field

from app.models.pricing import (
    Authority,
    CamelModel,
    Complexity,
    ContentFormat,
    EventDetails,
    Exclusivity,
    FormatQuantities,
    FrozenModel,
    PaidMediaDuration,
    PricingResult,
    Seasonality,
    UsageRights,
)

MissingField = Literal["format", "exclusivity", "usageRights"]
ChatOutcome = Literal["not_pricing", "clarification", "insufficient_data", "provisional", "priced"]


class Assumption(FrozenModel):
    """A field the parser defaulted, with the value it picked."""

    field: str
    value: str


class DeliverableCounts(FrozenModel):
    reels: int = 0
    stories: int = 0
    posts: int = 0
    total: int = 0


class ParseSignals(FrozenModel):
    has_deliverables: bool = False
    has_commercial_terms: bool = False
    has_price_intent: bool = False


class ParsedDealParams(FrozenModel):
    """
    Whatever the parser could read from the message.
    Required terms stay None until the user supplies them.
    """

    delivery_type: Literal["conteudo", "evento"] = "conteudo"
    format: Optional[Union[ContentFormat, Literal["evento"]]] = None
    format_quantities: Optional[FormatQuantities] = None
    exclusivity: Optional[Exclusivity] = None
    usage_rights: Optional[UsageRights] = None
    paid_media_duration: Optional[PaidMediaDuration] = None
    repost_tiktok: bool = Field(False, alias="repostTikTok")
    instagram_collab: bool = False
    complexity: Complexity = "simples"
    authority: Authority = "padrao"
    seasonality: Seasonality = "normal"
    event_details: Optional[EventDetails] = None
    event_coverage_quantities: Optional[FormatQuantities] = None


class ChatPricingParse(FrozenModel):
    params: ParsedDealParams
    missing: List[MissingField] = Field(default_factory=list)
    deliverables_summary: Optional[str] = None
    deliverables: DeliverableCounts = Field(default_factory=DeliverableCounts)
    assumptions: List[Assumption] = Field(default_factory=list)
    signals: ParseSignals = Field(default_factory=ParseSignals)


# -------------------------------------------------
# API PAYLOADS
# -------------------------------------------------
class ChatPricingRequest(CamelModel):
    user_id: str
    text: str
    previous_topic: Optional[str] = None
    profile_segment: Optional[str] = None
    # price at the market CPM per 1.000 reached, without creator metrics
    provisional: bool = False


class ChatPricingResponse(FrozenModel):
    handled: bool
    outcome: ChatOutcome
    reply: str = ""
    buttons: List[str] = Field(default_factory=list)
    result: Optional[PricingResult] = None
