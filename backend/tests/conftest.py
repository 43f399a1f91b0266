"""
Shared fixtures: deterministic resolver fakes + baseline inputs.

Baseline: avgReach 10000, engagement 0, CPM 10 (dynamic) -> base value 100.
"""

import asyncio
from typing import List, Optional

import pytest

from app.models.pricing import (
    CalibrationSnapshot,
    CpmQuote,
    CreatorMetricsSnapshot,
    PricingFlags,
)
from app.services.resolvers import PricingResolvers


BASELINE_METRICS = CreatorMetricsSnapshot(avg_reach=10000, avg_engagement_rate=0, profile_segment="beauty")
BASELINE_CPM = CpmQuote(value=10, source="dynamic", segment="beauty")


class FakeMetricsResolver:
    def __init__(self, snapshot: Optional[CreatorMetricsSnapshot] = BASELINE_METRICS, error=None, log=None):
        self.snapshot = snapshot
        self.error = error
        self.log = log if log is not None else []
        self.calls: List[str] = []

    async def resolve(self, user_id):
        self.calls.append(user_id)
        self.log.append("metrics:start")
        await asyncio.sleep(0.01)
        self.log.append("metrics:end")
        if self.error:
            raise self.error
        return self.snapshot


class FakeCpmResolver:
    def __init__(self, quote: CpmQuote = BASELINE_CPM, error=None, log=None):
        self.quote = quote
        self.error = error
        self.log = log if log is not None else []
        self.calls: List[str] = []

    async def resolve(self, segment):
        self.calls.append(segment)
        self.log.append("cpm:start")
        if self.error:
            raise self.error
        return self.quote


class FakeCalibrationResolver:
    def __init__(self, snapshot: Optional[CalibrationSnapshot] = None, error=None, log=None):
        self.snapshot = snapshot or CalibrationSnapshot()
        self.error = error
        self.log = log if log is not None else []
        self.calls: List[tuple] = []

    async def resolve(self, user_id, profile_segment):
        self.calls.append((user_id, profile_segment))
        self.log.append("calibration:start")
        if self.error:
            raise self.error
        return self.snapshot


@pytest.fixture
def baseline_metrics():
    return BASELINE_METRICS


@pytest.fixture
def baseline_cpm():
    return BASELINE_CPM


@pytest.fixture
def make_resolvers():
    """
    make_resolvers(metrics=..., cpm=..., calibration=...) -> PricingResolvers
    Unspecified resolvers get baseline fakes.
    """

    def _make(metrics=None, cpm=None, calibration=None):
        return PricingResolvers(
            metrics=metrics or FakeMetricsResolver(),
            cpm=cpm or FakeCpmResolver(),
            calibration=calibration or FakeCalibrationResolver(),
        )

    return _make


@pytest.fixture
def fakes():
    """Access to the fake classes from test modules."""

    class _Fakes:
        Metrics = FakeMetricsResolver
        Cpm = FakeCpmResolver
        Calibration = FakeCalibrationResolver

    return _Fakes


@pytest.fixture
def no_calibration_flags():
    return PricingFlags(brand_risk_enabled=False, calibration_enabled=False)
