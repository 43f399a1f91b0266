# backend/app/services/resolvers.py

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from app.models.pricing import CalibrationSnapshot, CpmQuote, CreatorMetricsSnapshot


# -------------------------------------------------
# RESOLVER CONTRACTS (async, read-only)
# -------------------------------------------------
@runtime_checkable
class MetricsResolver(Protocol):
    async def resolve(self, user_id: str) -> Optional[CreatorMetricsSnapshot]:
        """None when the creator has no usable reach."""
        ...


@runtime_checkable
class CpmResolver(Protocol):
    async def resolve(self, segment: str) -> CpmQuote:
        ...


@runtime_checkable
class CalibrationResolver(Protocol):
    async def resolve(self, user_id: str, profile_segment: str) -> CalibrationSnapshot:
        ...


@dataclass(frozen=True)
class PricingResolvers:
    """The three lookups one pricing request needs. Tests pass fakes."""

    metrics: MetricsResolver
    cpm: CpmResolver
    calibration: CalibrationResolver
