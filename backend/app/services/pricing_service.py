# backend/app/services/pricing_service.py

import asyncio
import json
import logging
from datetime import date
from typing import Callable, Dict, Optional, Tuple

from app.models.chat_pricing import ChatPricingParse, ChatPricingResponse
from app.models.pricing import (
    CalibrationSnapshot,
    CpmQuote,
    CreatorMetricsSnapshot,
    DealParameters,
    EventDeal,
    PricingFlags,
    PricingResult,
)
from app.services.calibration_service import neutral_snapshot
from app.services.cpm_service import normalize_segment, seed_quote
from app.services.deal_intent_parser import (
    build_deal_parameters,
    parse_chat_pricing_input,
    should_handle_chat_pricing,
)
from app.services.pricing_engine import calculate_pricing, estimate_logistics
from app.services.resolvers import PricingResolvers
from app.services.response_formatter import (
    PROVISIONAL_REACH,
    build_chat_pricing_clarification,
    build_chat_pricing_insufficient_data,
    build_chat_pricing_provisional,
    build_chat_pricing_response,
    extract_buttons,
)

logger = logging.getLogger(__name__)


class InsufficientMetricsError(Exception):
    """The creator has no usable reach, so there is nothing to price."""

    def __init__(self, user_id: str):
        super().__init__(f"No usable metrics for creator {user_id}")
        self.user_id = user_id


# -------------------------------------------------
# DAILY PRICE CACHE
# -------------------------------------------------
def build_cache_key(user_id: str, params: DealParameters, flags: PricingFlags, day: date) -> str:
    """
    creator + deal shape + flags + day.
    Hotel nights are trip logistics, not deal shape, so they stay out.
    """
    shape = params.model_dump(mode="json", by_alias=True)
    if isinstance(params, EventDeal):
        shape["eventDetails"].pop("hotelNights", None)
    return json.dumps(
        {
            "user": user_id,
            "shape": shape,
            "flags": flags.model_dump(mode="json"),
            "day": day.isoformat(),
        },
        sort_keys=True,
    )


class PricingCache:
    """
    In-memory, per process. Logistics on a hit are always recomputed
    from the caller's own params and never served from the cache.
    """

    def __init__(self, today: Callable[[], date] = date.today):
        self.today = today
        self._day: Optional[date] = None
        self._entries: Dict[str, PricingResult] = {}

    def get(self, user_id: str, params: DealParameters, flags: PricingFlags) -> Optional[PricingResult]:
        key = build_cache_key(user_id, params, flags, self.today())
        cached = self._entries.get(key)
        if cached is None:
            return None
        if not isinstance(params, EventDeal):
            return cached

        travel, hotel, logistics = estimate_logistics(params.event_details)
        breakdown = cached.breakdown.model_copy(
            update={"travel_cost": travel, "hotel_cost": hotel, "logistics_suggested": logistics}
        )
        return cached.model_copy(update={"breakdown": breakdown, "params": params})

    def set(self, user_id: str, params: DealParameters, flags: PricingFlags, result: PricingResult) -> None:
        today = self.today()
        # entries from previous days can never hit again
        if self._day != today:
            self._entries.clear()
            self._day = today
        self._entries[build_cache_key(user_id, params, flags, today)] = result

    def __len__(self) -> int:
        return len(self._entries)


# -------------------------------------------------
# RESOLVER CALLS (failures degrade, never raise)
# -------------------------------------------------
async def _resolve_metrics(resolvers: PricingResolvers, user_id: str) -> Optional[CreatorMetricsSnapshot]:
    try:
        return await resolvers.metrics.resolve(user_id)
    except Exception as e:
        logger.warning(f"⚠️ [PRICING] Metrics resolver failed for {user_id} → {e}")
        return None


async def _resolve_cpm(resolvers: PricingResolvers, segment: str) -> CpmQuote:
    try:
        return await resolvers.cpm.resolve(segment)
    except Exception as e:
        logger.warning(f"⚠️ [PRICING] CPM resolver failed for '{segment}', using seed → {e}")
        return seed_quote(normalize_segment(segment))


async def _resolve_calibration(
    resolvers: PricingResolvers,
    user_id: str,
    segment: str,
    enabled: bool,
) -> Optional[CalibrationSnapshot]:
    if not enabled:
        return None
    try:
        return await resolvers.calibration.resolve(user_id, segment)
    except Exception as e:
        logger.warning(f"⚠️ [PRICING] Calibration resolver failed for {user_id}, using neutral → {e}")
        return neutral_snapshot()


async def resolve_pricing_inputs(
    user_id: str,
    resolvers: PricingResolvers,
    flags: PricingFlags,
    profile_segment: Optional[str] = None,
) -> Tuple[Optional[CreatorMetricsSnapshot], Optional[CpmQuote], Optional[CalibrationSnapshot]]:
    """
    With a known segment all three lookups run at once.
    Without one, metrics go first (they carry the segment), then
    CPM + calibration run together for that segment.
    """
    if profile_segment:
        segment = normalize_segment(profile_segment)
        return await asyncio.gather(
            _resolve_metrics(resolvers, user_id),
            _resolve_cpm(resolvers, segment),
            _resolve_calibration(resolvers, user_id, segment, flags.calibration_enabled),
        )

    metrics = await _resolve_metrics(resolvers, user_id)
    if metrics is None:
        return None, None, None

    segment = normalize_segment(metrics.profile_segment)
    cpm, calibration = await asyncio.gather(
        _resolve_cpm(resolvers, segment),
        _resolve_calibration(resolvers, user_id, segment, flags.calibration_enabled),
    )
    return metrics, cpm, calibration


# -------------------------------------------------
# STRUCTURED PRICING
# -------------------------------------------------
async def price_deal(
    user_id: str,
    params: DealParameters,
    resolvers: PricingResolvers,
    flags: PricingFlags = PricingFlags(),
    profile_segment: Optional[str] = None,
    cache: Optional[PricingCache] = None,
) -> PricingResult:
    """
    Resolves creator inputs and runs the calculator.
    Raises InsufficientMetricsError when the creator has no usable reach.
    """
    # a segment hint changes the CPM, so it is part of the cache owner
    cache_owner = f"{user_id}|{normalize_segment(profile_segment)}" if profile_segment else user_id
    if cache is not None:
        cached = cache.get(cache_owner, params, flags)
        if cached is not None:
            logger.info(f"[PRICING] Cache hit for {user_id}")
            return cached

    metrics, cpm, calibration = await resolve_pricing_inputs(user_id, resolvers, flags, profile_segment)
    if metrics is None:
        logger.info(f"[PRICING] Insufficient metrics for {user_id}")
        raise InsufficientMetricsError(user_id)

    if profile_segment:
        metrics = metrics.model_copy(update={"profile_segment": normalize_segment(profile_segment)})

    result = calculate_pricing(
        metrics=metrics,
        cpm=cpm,
        calibration=calibration,
        params=params,
        brand_risk_enabled=flags.brand_risk_enabled,
    )

    if cache is not None:
        cache.set(cache_owner, params, flags, result)

    logger.info(
        f"💰 [PRICING] {user_id} → justo={result.result.justo} "
        f"cpm={result.cpm_applied} ({result.cpm_source}) "
        f"calibration={result.calibration.factor_applied}"
    )
    return result


# -------------------------------------------------
# CHAT PRICING
# -------------------------------------------------
def _parse_or_clarify(
    text: str,
    user_id: str,
    previous_topic: Optional[str],
) -> Tuple[ChatPricingParse, Optional[ChatPricingResponse]]:
    """(parse, reply) where reply is set when there is nothing to price yet."""
    parse = parse_chat_pricing_input(text)

    if not should_handle_chat_pricing(parse, previous_topic):
        return parse, ChatPricingResponse(handled=False, outcome="not_pricing")

    if parse.missing:
        logger.info(f"[CHAT_PRICING] {user_id} missing {parse.missing}")
        reply = build_chat_pricing_clarification(parse.missing)
        return parse, ChatPricingResponse(
            handled=True,
            outcome="clarification",
            reply=reply,
            buttons=extract_buttons(reply),
        )

    return parse, None


async def run_chat_pricing(
    text: str,
    user_id: str,
    resolvers: PricingResolvers,
    flags: PricingFlags = PricingFlags(),
    previous_topic: Optional[str] = None,
    profile_segment: Optional[str] = None,
    cache: Optional[PricingCache] = None,
) -> ChatPricingResponse:
    """
    text -> parse -> (clarify | resolve + calculate) -> chat reply.
    Never raises for missing terms or missing metrics: both become replies.
    """
    parse, early = _parse_or_clarify(text, user_id, previous_topic)
    if early is not None:
        return early

    params = build_deal_parameters(parse)

    try:
        result = await price_deal(
            user_id,
            params,
            resolvers,
            flags=flags,
            profile_segment=profile_segment,
            cache=cache,
        )
    except InsufficientMetricsError:
        reply = build_chat_pricing_insufficient_data()
        return ChatPricingResponse(
            handled=True,
            outcome="insufficient_data",
            reply=reply,
            buttons=extract_buttons(reply),
        )

    reply = build_chat_pricing_response(result, parse)
    return ChatPricingResponse(
        handled=True,
        outcome="priced",
        reply=reply,
        buttons=extract_buttons(reply),
        result=result,
    )


async def run_provisional_pricing(
    text: str,
    user_id: str,
    resolvers: PricingResolvers,
    flags: PricingFlags = PricingFlags(),
    previous_topic: Optional[str] = None,
    profile_segment: Optional[str] = None,
) -> ChatPricingResponse:
    """
    Answer for creators without metrics: same deal terms, market CPM,
    PROVISIONAL_REACH people reached, neutral calibration (widest band).
    Never cached: it is not this creator's price.
    """
    parse, early = _parse_or_clarify(text, user_id, previous_topic)
    if early is not None:
        return early

    params = build_deal_parameters(parse)
    segment = normalize_segment(profile_segment)
    cpm = await _resolve_cpm(resolvers, segment)

    result = calculate_pricing(
        metrics=CreatorMetricsSnapshot(avg_reach=PROVISIONAL_REACH, profile_segment=segment),
        cpm=cpm,
        calibration=neutral_snapshot(),
        params=params,
        brand_risk_enabled=flags.brand_risk_enabled,
    )

    logger.info(f"💰 [PRICING] {user_id} → provisional justo={result.result.justo} cpm={result.cpm_applied}")

    reply = build_chat_pricing_provisional(result, parse)
    return ChatPricingResponse(
        handled=True,
        outcome="provisional",
        reply=reply,
        buttons=extract_buttons(reply),
        result=result,
    )
