"""
Tests: pricing calculator (pure).

Run with:
    pytest backend/tests/test_pricing_engine.py -v
"""

import pytest
from pydantic import TypeAdapter

from app.models.pricing import (
    CalibrationSnapshot,
    CpmQuote,
    CreatorMetricsSnapshot,
    DealParameters,
)
from app.services.pricing_engine import (
    GUARDRAIL_MARKER,
    RISK_FLOOR_MARKER,
    SEED_CPM_MARKER,
    STRATEGIC_WAIVER_MARKER,
    calculate_pricing,
)

DEAL = TypeAdapter(DealParameters)

METRICS = CreatorMetricsSnapshot(avg_reach=10000, avg_engagement_rate=0, profile_segment="beauty")
CPM = CpmQuote(value=10, source="dynamic", segment="beauty")

LEGACY_REEL = {"format": "reels", "exclusivity": "nenhuma", "usageRights": "organico"}
GUARDED_WAIVER = {
    **LEGACY_REEL,
    "brandSize": "grande",
    "imageRisk": "baixo",
    "strategicGain": "alto",
    "authority": "ascensao",
}

CONFIDENT = dict(
    confidence=0.85,
    confidence_band="alta",
    segment_sample_size=40,
    creator_sample_size=12,
)


def price(payload, metrics=METRICS, cpm=CPM, calibration=None, brand_risk=False):
    return calculate_pricing(
        metrics=metrics,
        cpm=cpm,
        calibration=calibration,
        params=DEAL.validate_python(payload),
        brand_risk_enabled=brand_risk,
    )


class TestSingleFormat:
    def test_legacy_reel_baseline(self):
        r = price(LEGACY_REEL)
        assert r.result.justo == pytest.approx(140)
        assert r.params.format == "reels"
        assert r.breakdown.content_units == pytest.approx(1.4)
        assert r.cpm_applied == 10
        assert r.cpm_source == "dynamic"

    def test_one_year_exclusivity(self):
        r = price({**LEGACY_REEL, "exclusivity": "365d"})
        assert r.result.justo == pytest.approx(252)

    def test_paid_media_defaults_to_30d(self):
        r = price({**LEGACY_REEL, "usageRights": "midiapaga"})
        assert r.result.justo == pytest.approx(168)
        assert r.params.paid_media_duration == "30d"

    def test_tiktok_repost_surcharge(self):
        r = price({**LEGACY_REEL, "usageRights": "midiapaga", "repostTikTok": True})
        assert r.result.justo == pytest.approx(184.8)

    def test_instagram_collab_is_not_priced(self):
        with_collab = price({**LEGACY_REEL, "instagramCollab": True})
        assert with_collab.result.justo == pytest.approx(140)
        assert with_collab.params.instagram_collab is True

    def test_longer_paid_window_costs_more(self):
        short = price({**LEGACY_REEL, "usageRights": "midiapaga", "paidMediaDuration": "7d"})
        long = price({**LEGACY_REEL, "usageRights": "midiapaga", "paidMediaDuration": "365d"})
        assert short.result.justo < 168 < long.result.justo

    def test_exclusivity_is_monotonic(self):
        values = [
            price({**LEGACY_REEL, "exclusivity": e}).result.justo
            for e in ("nenhuma", "7d", "15d", "30d", "365d")
        ]
        assert values == sorted(values)
        assert len(set(values)) == len(values)

    def test_format_weight_ordering(self):
        reel = price({**LEGACY_REEL, "format": "reels"}).result.justo
        post = price({**LEGACY_REEL, "format": "post"}).result.justo
        story = price({**LEGACY_REEL, "format": "stories"}).result.justo
        assert reel > post > story

    def test_no_format_means_one_reel(self):
        r = price({"exclusivity": "nenhuma", "usageRights": "organico"})
        assert r.result.justo == pytest.approx(140)
        assert r.params.format == "reels"


class TestPackages:
    def test_multi_delivery_becomes_pacote(self):
        r = price({
            "deliveryType": "conteudo",
            "formatQuantities": {"reels": 1, "post": 0, "stories": 3},
            "exclusivity": "nenhuma",
            "usageRights": "organico",
        })
        assert r.params.format == "pacote"
        assert r.breakdown.content_units == pytest.approx(3.8)
        assert r.result.justo == pytest.approx(380)

    def test_single_quantity_keeps_its_format(self):
        r = price({**LEGACY_REEL, "format": None, "formatQuantities": {"stories": 1}})
        assert r.params.format == "stories"
        assert r.result.justo == pytest.approx(80)

    def test_quantities_override_legacy_format(self):
        r = price({**LEGACY_REEL, "formatQuantities": {"reels": 2}})
        assert r.params.format == "pacote"
        assert r.result.justo == pytest.approx(280)

    def test_legacy_pacote_without_quantities(self):
        r = price({**LEGACY_REEL, "format": "pacote"})
        assert r.breakdown.content_units == pytest.approx(1.6)
        assert r.result.justo == pytest.approx(160)


class TestEvents:
    def test_local_presence(self):
        r = price({
            "deliveryType": "evento",
            "eventDetails": {"durationHours": 8, "travelTier": "local", "hotelNights": 0},
            "exclusivity": "nenhuma",
            "usageRights": "organico",
        })
        assert r.params.format == "evento"
        assert r.breakdown.event_presence_justo == pytest.approx(320)
        assert r.result.justo == pytest.approx(320)
        assert r.breakdown.logistics_suggested == 0

    def test_national_presence_with_coverage(self):
        r = price({
            "deliveryType": "evento",
            "eventDetails": {"durationHours": 4, "travelTier": "nacional", "hotelNights": 2},
            "eventCoverageQuantities": {"reels": 1},
            "exclusivity": "nenhuma",
            "usageRights": "organico",
        })
        assert r.breakdown.event_presence_justo == pytest.approx(240)
        assert r.breakdown.coverage_justo == pytest.approx(126)
        assert r.result.justo == pytest.approx(366)
        assert r.breakdown.travel_cost == 1500
        assert r.breakdown.hotel_cost == 600
        assert r.breakdown.logistics_suggested == pytest.approx(2100)
        assert r.breakdown.logistics_included_in_cache is False

    def test_logistics_never_in_price(self):
        a = price({
            "deliveryType": "evento",
            "eventDetails": {"durationHours": 4, "travelTier": "internacional", "hotelNights": 0},
            "exclusivity": "nenhuma",
            "usageRights": "organico",
        })
        b = price({
            "deliveryType": "evento",
            "eventDetails": {"durationHours": 4, "travelTier": "internacional", "hotelNights": 10},
            "exclusivity": "nenhuma",
            "usageRights": "organico",
        })
        assert a.result == b.result
        assert b.breakdown.logistics_suggested == pytest.approx(4000 + 3000)


class TestEngagement:
    def test_negative_clamps_to_zero(self):
        metrics = METRICS.model_copy(update={"avg_engagement_rate": -0.4})
        r = price(LEGACY_REEL, metrics=metrics)
        assert r.metrics.engagement == 0
        assert r.result.justo == pytest.approx(140)

    def test_runaway_clamps_to_25(self):
        metrics = METRICS.model_copy(update={"avg_engagement_rate": 300})
        r = price(LEGACY_REEL, metrics=metrics)
        assert r.metrics.engagement == 25
        assert r.result.justo == pytest.approx(175)
        assert "Engajamento informado" in r.explanation

    def test_engagement_raises_price(self):
        metrics = METRICS.model_copy(update={"avg_engagement_rate": 5})
        assert price(LEGACY_REEL, metrics=metrics).result.justo == pytest.approx(147)


class TestInvalidCpm:
    @pytest.mark.parametrize("value", [-5, 0])
    def test_non_positive_cpm_keeps_band_ordered(self, value):
        r = price(LEGACY_REEL, cpm=CpmQuote(value=value, source="dynamic"))
        assert r.result.justo == 0
        assert r.result.estrategico <= r.result.justo <= r.result.premium
        assert r.cpm_applied == 0

    def test_negative_cpm_reported(self):
        r = price(LEGACY_REEL, cpm=CpmQuote(value=-5, source="dynamic"))
        assert "CPM invalido (-5.00)" in r.explanation
        assert "CPM base aplicado: R$ 0,00" in r.explanation


class TestBrandRisk:
    def test_risk_inputs_ignored_when_module_off(self):
        r = price({**LEGACY_REEL, "contentModel": "ugc_whitelabel", "imageRisk": "alto"})
        assert r.result.justo == pytest.approx(140)
        assert r.brand_risk.enabled is False

    def test_ugc_whitelabel_is_65_percent(self):
        base = price(LEGACY_REEL, brand_risk=True)
        ugc = price({**LEGACY_REEL, "contentModel": "ugc_whitelabel"}, brand_risk=True)
        assert ugc.result.justo == pytest.approx(base.result.justo * 0.65)
        assert ugc.result.justo == pytest.approx(91)

    def test_small_brand_high_risk_above_baseline(self):
        base = price(LEGACY_REEL, brand_risk=True)
        risky = price({**LEGACY_REEL, "brandSize": "pequena", "imageRisk": "alto"}, brand_risk=True)
        assert risky.result.justo > base.result.justo

    def test_high_risk_floor_beats_strategic_discount(self):
        scenario = {**LEGACY_REEL, "brandSize": "grande", "strategicGain": "alto"}
        high = price({**scenario, "imageRisk": "alto"}, brand_risk=True)
        low = price({**scenario, "imageRisk": "baixo"}, brand_risk=True)
        assert high.result.justo > low.result.justo
        assert high.brand_risk.floor_applied is True
        assert RISK_FLOOR_MARKER in high.explanation
        assert RISK_FLOOR_MARKER not in low.explanation
        assert high.result.justo == pytest.approx(154)


class TestStrategicWaiver:
    def test_guarded_combination_zeroes_estrategico(self):
        r = price({**GUARDED_WAIVER, "allowStrategicWaiver": True}, brand_risk=True)
        assert r.result.estrategico == 0
        assert r.result.justo > 0
        assert r.result.premium > 0
        assert r.brand_risk.waiver_applied is True
        assert STRATEGIC_WAIVER_MARKER in r.explanation

    def test_flag_off_keeps_estrategico(self):
        r = price({**GUARDED_WAIVER, "allowStrategicWaiver": False}, brand_risk=True)
        assert r.result.estrategico > 0

    @pytest.mark.parametrize("override", [
        {"brandSize": "media"},
        {"imageRisk": "medio"},
        {"strategicGain": "medio"},
        {"authority": "padrao"},
    ])
    def test_partial_combination_keeps_estrategico(self, override):
        r = price({**GUARDED_WAIVER, "allowStrategicWaiver": True, **override}, brand_risk=True)
        assert r.result.estrategico > 0
        assert r.brand_risk.waiver_applied is False

    def test_waiver_survives_calibration(self):
        calibration = CalibrationSnapshot(factor_raw=1.1, **CONFIDENT)
        r = price({**GUARDED_WAIVER, "allowStrategicWaiver": True}, calibration=calibration, brand_risk=True)
        assert r.calibration.factor_applied == pytest.approx(1.1)
        assert r.result.estrategico == 0
        assert r.result.justo > 0


class TestCalibration:
    def test_disabled_when_no_snapshot(self):
        r = price(LEGACY_REEL)
        assert r.calibration.enabled is False
        assert r.calibration.factor_applied == 1

    def test_low_confidence_widens_band(self):
        calibration = CalibrationSnapshot(
            factor_raw=1.5,
            confidence=0.2,
            confidence_band="baixa",
            segment_sample_size=3,
            creator_sample_size=2,
        )
        r = price(LEGACY_REEL, calibration=calibration)
        assert r.calibration.factor_applied == 1
        assert r.calibration.low_confidence_range_expanded is True
        assert r.result.justo == pytest.approx(140)
        assert r.result.estrategico == pytest.approx(0.65 * 140)
        assert r.result.premium == pytest.approx(1.6 * 140)

    def test_small_samples_are_unusable_even_with_good_band(self):
        calibration = CalibrationSnapshot(
            factor_raw=1.2,
            confidence=0.5,
            confidence_band="media",
            segment_sample_size=5,
            creator_sample_size=5,
        )
        r = price(LEGACY_REEL, calibration=calibration)
        assert r.calibration.low_confidence_range_expanded is True
        assert r.calibration.factor_applied == 1

    def test_guardrail_caps_at_25_percent(self):
        calibration = CalibrationSnapshot(factor_raw=1.82, **CONFIDENT)
        r = price(LEGACY_REEL, calibration=calibration)
        assert r.calibration.factor_raw == pytest.approx(1.82)
        assert r.calibration.factor_applied == pytest.approx(1.25)
        assert r.calibration.guardrail_applied is True
        assert r.calibration.base_justo == pytest.approx(140)
        assert r.result.justo == pytest.approx(175)
        assert GUARDRAIL_MARKER in r.explanation

    def test_factor_inside_guardrail_is_applied(self):
        calibration = CalibrationSnapshot(factor_raw=1.1, **CONFIDENT)
        r = price(LEGACY_REEL, calibration=calibration)
        assert r.calibration.guardrail_applied is False
        assert r.result.justo == pytest.approx(154)
        assert r.result.estrategico == pytest.approx(154 * 0.75)
        assert r.result.premium == pytest.approx(154 * 1.4)


class TestInvariants:
    @pytest.mark.parametrize("payload", [
        LEGACY_REEL,
        {**LEGACY_REEL, "exclusivity": "30d", "usageRights": "global", "paidMediaDuration": "365d"},
        {**LEGACY_REEL, "format": "pacote", "complexity": "profissional", "seasonality": "baixa"},
        {**LEGACY_REEL, "authority": "celebridade", "seasonality": "alta"},
        {
            "deliveryType": "evento",
            "eventDetails": {"durationHours": 2, "travelTier": "internacional"},
            "eventCoverageQuantities": {"stories": 5},
            "exclusivity": "7d",
            "usageRights": "midiapaga",
        },
    ])
    def test_band_ordering(self, payload):
        r = price(payload)
        assert 0 < r.result.estrategico <= r.result.justo <= r.result.premium

    def test_seed_cpm_is_flagged(self):
        r = price(LEGACY_REEL, cpm=CpmQuote(value=25, source="seed"))
        assert r.cpm_source == "seed"
        assert SEED_CPM_MARKER in r.explanation
        assert r.result.justo == pytest.approx(350)

    def test_same_input_same_output(self):
        assert price(LEGACY_REEL) == price(LEGACY_REEL)

    def test_results_are_frozen(self):
        r = price(LEGACY_REEL)
        with pytest.raises(Exception):
            r.result.justo = 1
