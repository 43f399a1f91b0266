# backend/app/routes/pricing.py

import logging
from functools import lru_cache

from fastapi import APIRouter, Depends, HTTPException

from app.config import PRICING_BRAND_RISK_ENABLED, PRICING_CALIBRATION_ENABLED
from app.models.chat_pricing import ChatPricingRequest, ChatPricingResponse
from app.models.pricing import PricingFlags, PricingRequest, PricingResult
from app.services.calibration_service import PostgresCalibrationResolver
from app.services.cpm_service import PostgresCpmResolver
from app.services.metrics_service import HttpMetricsResolver
from app.services.pricing_service import (
    InsufficientMetricsError,
    PricingCache,
    price_deal,
    run_chat_pricing,
    run_provisional_pricing,
)
from app.services.resolvers import PricingResolvers

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pricing", tags=["Pricing"])


# -------------------------------------------------
# DEPENDENCIES (overridden in tests)
# -------------------------------------------------
@lru_cache(maxsize=1)
def get_pricing_resolvers() -> PricingResolvers:
    return PricingResolvers(
        metrics=HttpMetricsResolver(),
        cpm=PostgresCpmResolver(),
        calibration=PostgresCalibrationResolver(),
    )


def get_pricing_flags() -> PricingFlags:
    return PricingFlags(
        brand_risk_enabled=PRICING_BRAND_RISK_ENABLED,
        calibration_enabled=PRICING_CALIBRATION_ENABLED,
    )


@lru_cache(maxsize=1)
def get_pricing_cache() -> PricingCache:
    return PricingCache()


# -------------------------------------------------
# ROUTES
# -------------------------------------------------
@router.post("/calculate", response_model=PricingResult, response_model_by_alias=True)
async def calculate_pricing(
    data: PricingRequest,
    resolvers: PricingResolvers = Depends(get_pricing_resolvers),
    flags: PricingFlags = Depends(get_pricing_flags),
    cache: PricingCache = Depends(get_pricing_cache),
):
    """
    Structured pricing.
    - content or event deal (tagged on deliveryType)
    - 422 insufficient_data when the creator has no usable reach
    """
    try:
        return await price_deal(
            data.user_id,
            data.params,
            resolvers,
            flags=flags,
            profile_segment=data.profile_segment,
            cache=cache,
        )
    except InsufficientMetricsError:
        raise HTTPException(status_code=422, detail="insufficient_data")


@router.post("/chat", response_model=ChatPricingResponse, response_model_by_alias=True)
async def chat_pricing(
    data: ChatPricingRequest,
    resolvers: PricingResolvers = Depends(get_pricing_resolvers),
    flags: PricingFlags = Depends(get_pricing_flags),
    cache: PricingCache = Depends(get_pricing_cache),
):
    """
    Free-text pricing. Always 200: clarifications and missing
    metrics come back as replies, not errors.
    - provisional=true prices at the market CPM per 1.000 reached
    """
    if data.provisional:
        response = await run_provisional_pricing(
            data.text,
            data.user_id,
            resolvers,
            flags=flags,
            previous_topic=data.previous_topic,
            profile_segment=data.profile_segment,
        )
        logger.info(f"[CHAT_PRICING] {data.user_id} → {response.outcome}")
        return response

    response = await run_chat_pricing(
        data.text,
        data.user_id,
        resolvers,
        flags=flags,
        previous_topic=data.previous_topic,
        profile_segment=data.profile_segment,
        cache=cache,
    )
    logger.info(f"[CHAT_PRICING] {data.user_id} → {response.outcome}")
    return response
