# backend/app/services/calibration_service.py

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from statistics import median
from typing import Callable, List, Optional

from app.db import fetch_all
from app.models.pricing import CalibrationSnapshot
from app.services.pricing_engine import (
    CALIBRATION_CREATOR_MIN_SAMPLES,
    CALIBRATION_SEGMENT_MIN_SAMPLES,
)
from app.utils.helpers import clamp, round4

logger = logging.getLogger(__name__)

# ---------------------------------------------
# CALIBRATION WINDOWS + WEIGHTS
# ---------------------------------------------
WINDOW_DAYS_SEGMENT = 180
WINDOW_DAYS_CREATOR = 365

MIN_RATIO = 0.4
MAX_RATIO = 2.2

SEGMENT_BLEND = 0.7
CREATOR_BLEND = 0.3

MAD_TOLERANCE = 0.35

ELIGIBLE_DEALS_SQL = """
    SELECT compensation_value,
           linked_calculation_justo,
           linked_calculation_reach,
           linked_calculation_segment,
           pricing_link_method,
           created_at
    FROM ad_deals
    WHERE user_id = %s
      AND deal_date >= %s
      AND compensation_type = 'Valor Fixo'
      AND compensation_currency = 'BRL'
      AND compensation_value > 0
      AND source_calculation_id IS NOT NULL
      AND linked_calculation_justo > 0
"""


def neutral_snapshot() -> CalibrationSnapshot:
    return CalibrationSnapshot(
        window_days_segment=WINDOW_DAYS_SEGMENT,
        window_days_creator=WINDOW_DAYS_CREATOR,
    )


def _segment_key(value: Optional[str]) -> str:
    return (value or "default").strip().lower() or "default"


def _as_utc(value: Optional[datetime], fallback: datetime) -> datetime:
    if value is None:
        return fallback
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def median_absolute_deviation(values: List[float]) -> float:
    if not values:
        return 0.0
    center = median(values)
    return median([abs(v - center) for v in values])


def build_calibration_snapshot(
    rows: List[dict],
    profile_segment: Optional[str],
    now: Optional[datetime] = None,
) -> CalibrationSnapshot:
    """
    Turns the creator's closed deals into a calibration factor.

    ratio = closed value / linked calculator justo, clamped to [0.4, 2.2]
    factorRaw = 0.7 x segment median + 0.3 x creator median
      (segment: same segment, last 180 days, >= 30 deals;
       creator: last 365 days, >= 10 deals; one side alone is used as-is)
    """
    now = now or datetime.now(timezone.utc)
    segment_since = now - timedelta(days=WINDOW_DAYS_SEGMENT)
    segment = _segment_key(profile_segment)

    records = []
    for row in rows:
        value = float(row.get("compensation_value") or 0)
        justo = float(row.get("linked_calculation_justo") or 0)
        reach = float(row.get("linked_calculation_reach") or 0)
        if value <= 0 or justo <= 0 or reach <= 0:
            continue
        records.append({
            "ratio": clamp(value / justo, MIN_RATIO, MAX_RATIO),
            "segment": _segment_key(row.get("linked_calculation_segment")),
            "manual": row.get("pricing_link_method") == "manual",
            "created_at": _as_utc(row.get("created_at"), now),
        })

    if not records:
        return neutral_snapshot()

    creator_ratios = [r["ratio"] for r in records]
    segment_ratios = [
        r["ratio"] for r in records
        if r["segment"] == segment and r["created_at"] >= segment_since
    ]
    creator_n = len(creator_ratios)
    segment_n = len(segment_ratios)

    creator_factor = median(creator_ratios) if creator_n >= CALIBRATION_CREATOR_MIN_SAMPLES else None
    segment_factor = median(segment_ratios) if segment_n >= CALIBRATION_SEGMENT_MIN_SAMPLES else None

    if segment_factor is not None and creator_factor is not None:
        factor_raw = segment_factor * SEGMENT_BLEND + creator_factor * CREATOR_BLEND
    elif segment_factor is not None:
        factor_raw = segment_factor
    elif creator_factor is not None:
        factor_raw = creator_factor
    else:
        factor_raw = 1.0

    manual_rate = sum(1 for r in records if r["manual"]) / len(records)
    mad = median_absolute_deviation(creator_ratios)

    confidence = clamp(
        0.45 * min(segment_n / CALIBRATION_SEGMENT_MIN_SAMPLES, 1)
        + 0.25 * min(creator_n / CALIBRATION_CREATOR_MIN_SAMPLES, 1)
        + 0.2 * (1 - min(mad / MAD_TOLERANCE, 1))
        + 0.1 * manual_rate,
        0.0,
        1.0,
    )

    if confidence >= 0.7:
        band = "alta"
    elif confidence >= 0.4:
        band = "media"
    else:
        band = "baixa"

    if manual_rate >= 0.75:
        link_quality = "high"
    elif manual_rate >= 0.35:
        link_quality = "mixed"
    else:
        link_quality = "low"

    return CalibrationSnapshot(
        factor_raw=round(factor_raw, 2),
        confidence=round4(confidence),
        confidence_band=band,
        segment_sample_size=segment_n,
        creator_sample_size=creator_n,
        manual_link_rate=round4(manual_rate),
        link_quality=link_quality,
        mad=round4(mad),
        window_days_segment=WINDOW_DAYS_SEGMENT,
        window_days_creator=WINDOW_DAYS_CREATOR,
    )


def _load_eligible_deals(user_id: str, since: datetime) -> List[dict]:
    return fetch_all(ELIGIBLE_DEALS_SQL, (user_id, since))


class PostgresCalibrationResolver:
    """
    Historical-deal calibration from `ad_deals`.
    Any failure resolves to the neutral snapshot.
    """

    def __init__(
        self,
        fetch_rows: Callable[[str, datetime], List[dict]] = _load_eligible_deals,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.fetch_rows = fetch_rows
        self.clock = clock

    async def resolve(self, user_id: str, profile_segment: str) -> CalibrationSnapshot:
        now = self.clock()
        since = now - timedelta(days=WINDOW_DAYS_CREATOR)

        try:
            rows = await asyncio.to_thread(self.fetch_rows, user_id, since)
        except Exception as e:
            logger.warning(f"⚠️ [CALIBRATION] Deal lookup failed for {user_id} → {e}")
            return neutral_snapshot()

        snapshot = build_calibration_snapshot(rows, profile_segment, now=now)
        logger.info(
            f"[CALIBRATION] {user_id}/{_segment_key(profile_segment)} → "
            f"factor={snapshot.factor_raw} band={snapshot.confidence_band} "
            f"n_seg={snapshot.segment_sample_size} n_creator={snapshot.creator_sample_size}"
        )
        return snapshot
