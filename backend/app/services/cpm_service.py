# backend/app/services/cpm_service.py

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional

from app.db import fetch_all
from app.models.pricing import CpmQuote

logger = logging.getLogger(__name__)

# ---------------------------------------------
# SEED BENCHMARK (used until real data exists)
# ---------------------------------------------
DEFAULT_SEGMENT = "default"
SEED_CPM_BY_SEGMENT = {
    DEFAULT_SEGMENT: 25.0,
}

WEIGHT_CALCULATION = 0.6
WEIGHT_DEALS = 0.4
CACHE_TTL_SECONDS = 60 * 60

BENCHMARK_SQL = """
    SELECT segment, calculation_cpm, deal_cpm
    FROM segment_cpm_benchmarks
"""


def normalize_segment(segment: Optional[str]) -> str:
    return (segment or "").strip().lower() or DEFAULT_SEGMENT


def seed_quote(segment: str) -> CpmQuote:
    value = SEED_CPM_BY_SEGMENT.get(segment, SEED_CPM_BY_SEGMENT[DEFAULT_SEGMENT])
    return CpmQuote(value=round(value, 2), source="seed", segment=segment)


def blend_benchmarks(rows: List[dict]) -> Dict[str, float]:
    """
    calculation CPM x 0.6 + deal CPM x 0.4 per segment.
    A segment with only one side uses that side as-is.
    """
    blended: Dict[str, float] = {}
    for row in rows:
        segment = normalize_segment(row.get("segment"))
        calc = row.get("calculation_cpm")
        deal = row.get("deal_cpm")
        calc = float(calc) if calc is not None and float(calc) > 0 else None
        deal = float(deal) if deal is not None and float(deal) > 0 else None

        if calc is not None and deal is not None:
            blended[segment] = round(calc * WEIGHT_CALCULATION + deal * WEIGHT_DEALS, 2)
        elif calc is not None:
            blended[segment] = round(calc, 2)
        elif deal is not None:
            blended[segment] = round(deal, 2)
    return blended


def _load_benchmark_rows() -> List[dict]:
    return fetch_all(BENCHMARK_SQL)


class PostgresCpmResolver:
    """
    Segment CPM from `segment_cpm_benchmarks`, cached for an hour.
    Missing rows or a failing database fall back to the seed benchmark.
    """

    def __init__(
        self,
        fetch_rows: Callable[[], List[dict]] = _load_benchmark_rows,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.fetch_rows = fetch_rows
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._cache: Optional[Dict[str, float]] = None
        self._loaded_at = 0.0

    async def _benchmarks(self) -> Dict[str, float]:
        now = self.clock()
        if self._cache is not None and now - self._loaded_at < self.ttl_seconds:
            return self._cache

        previous = self._cache or {}
        rows = await asyncio.to_thread(self.fetch_rows)
        table = blend_benchmarks(rows)

        for segment, value in table.items():
            if previous.get(segment) != value:
                logger.info(f"[CPM_UPDATE] {segment}: {previous.get(segment, 'n/a')} → {value}")

        self._cache = table
        self._loaded_at = now
        return table

    async def resolve(self, segment: str) -> CpmQuote:
        segment = normalize_segment(segment)

        try:
            table = await self._benchmarks()
        except Exception as e:
            logger.warning(f"⚠️ [CPM] Benchmark lookup failed, using seed → {e}")
            return seed_quote(segment)

        if segment in table:
            return CpmQuote(value=table[segment], source="dynamic", segment=segment)
        if DEFAULT_SEGMENT in table:
            return CpmQuote(value=table[DEFAULT_SEGMENT], source="dynamic", segment=segment)

        logger.info(f"[CPM_SEED] No benchmark for '{segment}', using seed")
        return seed_quote(segment)
