# backend/app/services/metrics_service.py

import logging
from typing import Any, Optional

import httpx

from app.config import METRICS_PERIOD_DAYS, METRICS_SERVICE_URL, METRICS_TIMEOUT_SECONDS
from app.models.pricing import CreatorMetricsSnapshot

logger = logging.getLogger(__name__)


def _to_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_metrics_payload(data: Any) -> Optional[CreatorMetricsSnapshot]:
    """
    Reads the metrics service response:
      {"overallStats": {"avgReach": 10000, "avgEngagementRate": 3.2},
       "profileSegment": "beauty"}
    Engagement sent as a fraction (0.032) is converted to percent.
    Returns None when reach is missing or not positive.
    """
    if not isinstance(data, dict):
        return None

    stats = data.get("overallStats") or {}
    reach = _to_float(stats.get("avgReach"))
    if reach is None or reach <= 0:
        return None

    engagement = _to_float(stats.get("avgEngagementRate"))
    if engagement is None:
        engagement = _to_float(stats.get("avgEngagement"))
    if engagement is None:
        engagement = 0.0
    elif 0 < engagement <= 1:
        engagement *= 100

    segment = data.get("profileSegment") or stats.get("profileSegment") or "default"

    return CreatorMetricsSnapshot(
        avg_reach=reach,
        avg_engagement_rate=engagement,
        profile_segment=str(segment).strip().lower() or "default",
    )


class HttpMetricsResolver:
    """
    Creator metrics over HTTP.
    Never raises: transport errors and bad payloads resolve to None.
    """

    def __init__(
        self,
        base_url: str = METRICS_SERVICE_URL,
        period_days: int = METRICS_PERIOD_DAYS,
        timeout: float = METRICS_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.period_days = period_days
        self.timeout = timeout
        self.transport = transport

    async def resolve(self, user_id: str) -> Optional[CreatorMetricsSnapshot]:
        url = f"{self.base_url}/creators/{user_id}/metrics"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.get(url, params={"periodDays": self.period_days})
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"[METRICS] Lookup failed for {user_id} → {e}")
            return None

        snapshot = parse_metrics_payload(data)
        if snapshot is None:
            logger.info(f"[METRICS] No usable reach for {user_id}")
        return snapshot
