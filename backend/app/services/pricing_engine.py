# backend/app/services/pricing_engine.py

from typing import List, Optional, Tuple

from app.models.pricing import (
    BrandRiskOutcome,
    CalibrationOutcome,
    CalibrationSnapshot,
    CommercialTerms,
    ContentDeal,
    CpmQuote,
    CreatorMetricsSnapshot,
    DealParameters,
    EventDeal,
    EventDetails,
    FormatQuantities,
    PriceBand,
    PricingBreakdown,
    PricingMetrics,
    PricingResult,
)
from app.utils.helpers import clamp, format_brl, format_int_br, round_currency


# ---------------------------------------------
# FORMAT WEIGHTS: Reel > Post > Story
# ---------------------------------------------
FORMAT_WEIGHTS = {
    "reels":   1.4,
    "post":    1.0,
    "stories": 0.8,
}

# legacy "pacote" calls with no quantities
LEGACY_PACKAGE_UNITS = 1.6

# ---------------------------------------------
# COMMERCIAL TERMS
# ---------------------------------------------
EXCLUSIVITY_MULT = {
    "nenhuma": 1.0,
    "7d":      1.1,
    "15d":     1.2,
    "30d":     1.3,
    "365d":    1.8,
}

USAGE_RIGHTS_MULT = {
    "organico":  1.0,
    "midiapaga": 1.2,
    "global":    1.4,
}

# only for non-organic usage rights; 30d is the legacy baseline
PAID_MEDIA_DURATION_MULT = {
    "7d":   0.8,
    "15d":  0.9,
    "30d":  1.0,
    "90d":  1.15,
    "180d": 1.3,
    "365d": 1.5,
}

REPOST_TIKTOK_MULT = 1.1

COMPLEXITY_MULT = {
    "simples":      1.0,
    "roteiro":      1.1,
    "profissional": 1.3,
}

AUTHORITY_MULT = {
    "padrao":      1.0,
    "ascensao":    1.2,
    "autoridade":  1.5,
    "celebridade": 2.0,
}

SEASONALITY_MULT = {
    "normal": 1.0,
    "alta":   1.2,
    "baixa":  0.9,
}

# ---------------------------------------------
# EVENTS
# ---------------------------------------------
EVENT_UNITS_PER_HOUR = 0.4

TRAVEL_TIER_MULT = {
    "local":         1.0,
    "nacional":      1.5,
    "internacional": 2.0,
}

# content produced on-site is cheaper than a standalone delivery
EVENT_COVERAGE_FACTOR = 0.9

# BRL, advisory only (never part of the price)
TRAVEL_COST_BRL = {
    "local":         0,
    "nacional":      1500,
    "internacional": 4000,
}
HOTEL_NIGHT_BRL = 300

# ---------------------------------------------
# BRAND RISK (module flag)
# ---------------------------------------------
BRAND_SIZE_MULT = {
    "pequena": 1.1,
    "media":   1.0,
    "grande":  0.95,
}

IMAGE_RISK_MULT = {
    "baixo": 0.95,
    "medio": 1.0,
    "alto":  1.2,
}

STRATEGIC_GAIN_MULT = {
    "baixo": 1.0,
    "medio": 0.95,
    "alto":  0.85,
}

HIGH_IMAGE_RISK_FLOOR = 1.1

CONTENT_MODEL_MULT = {
    "publicidade_perfil": 1.0,
    "ugc_whitelabel":     0.65,
}

# ---------------------------------------------
# PRICE BAND + CALIBRATION
# ---------------------------------------------
DEFAULT_SPREAD = (0.75, 1.4)
LOW_CONFIDENCE_SPREAD = (0.65, 1.6)

CALIBRATION_MIN_FACTOR = 0.75
CALIBRATION_MAX_FACTOR = 1.25
CALIBRATION_SEGMENT_MIN_SAMPLES = 30
CALIBRATION_CREATOR_MIN_SAMPLES = 10

ENGAGEMENT_MAX_PERCENT = 25.0

RISK_FLOOR_MARKER = "Piso de risco aplicado"
STRATEGIC_WAIVER_MARKER = "Abertura estrategica"
GUARDRAIL_MARKER = "Guardrail de calibracao aplicado"
SEED_CPM_MARKER = "CPM inicial de mercado"


def _fmt_mult(value: float) -> str:
    return f"{value:.2f}x"


# ---------------------------------------------
# DELIVERY SHAPE
# ---------------------------------------------
def content_units_for(quantities: FormatQuantities) -> float:
    return sum(getattr(quantities, name) * weight for name, weight in FORMAT_WEIGHTS.items())


def resolve_content_shape(params: ContentDeal) -> Tuple[str, Optional[FormatQuantities], float]:
    """
    Returns (format, quantities, content units).
    Quantities win over the legacy single format; one unit of one
    format keeps that format, anything else becomes "pacote".
    """
    quantities = params.format_quantities
    if quantities is not None and quantities.total() > 0:
        active = quantities.active_formats()
        if len(active) == 1 and quantities.total() == 1:
            return active[0], quantities, FORMAT_WEIGHTS[active[0]]
        return "pacote", quantities, content_units_for(quantities)

    if params.format in FORMAT_WEIGHTS:
        return params.format, FormatQuantities.for_format(params.format), FORMAT_WEIGHTS[params.format]

    if params.format == "pacote":
        return "pacote", None, LEGACY_PACKAGE_UNITS

    return "reels", FormatQuantities(reels=1), FORMAT_WEIGHTS["reels"]


def event_presence_units(details: EventDetails) -> float:
    return details.duration_hours * EVENT_UNITS_PER_HOUR * TRAVEL_TIER_MULT[details.travel_tier]


def estimate_logistics(details: EventDetails) -> Tuple[float, float, float]:
    """(travel, hotel, total) in BRL. Informational, never part of the price."""
    travel = float(TRAVEL_COST_BRL[details.travel_tier])
    hotel = float(details.hotel_nights * HOTEL_NIGHT_BRL)
    return travel, hotel, travel + hotel


# ---------------------------------------------
# MULTIPLIERS
# ---------------------------------------------
def commercial_multiplier(params: CommercialTerms) -> Tuple[float, List[str]]:
    """
    exclusivity x usage rights (x paid-media window) x repost
    x complexity x authority x seasonality, in that order.
    """
    notes: List[str] = []
    mult = EXCLUSIVITY_MULT[params.exclusivity]
    if params.exclusivity != "nenhuma":
        notes.append(f"Exclusividade ({params.exclusivity}): {_fmt_mult(EXCLUSIVITY_MULT[params.exclusivity])}.")

    usage = USAGE_RIGHTS_MULT[params.usage_rights]
    if params.usage_rights != "organico" and params.paid_media_duration:
        usage *= PAID_MEDIA_DURATION_MULT[params.paid_media_duration]
        notes.append(
            f"Uso de imagem ({params.usage_rights}, {params.paid_media_duration}): {_fmt_mult(usage)}."
        )
    mult *= usage

    if params.repost_tiktok:
        mult *= REPOST_TIKTOK_MULT
        notes.append(f"Repost no TikTok: {_fmt_mult(REPOST_TIKTOK_MULT)}.")
    if params.instagram_collab:
        notes.append("Collab no Instagram registrado (sem impacto no preco).")

    mult *= COMPLEXITY_MULT[params.complexity]
    if params.complexity != "simples":
        notes.append(f"Complexidade ({params.complexity}): {_fmt_mult(COMPLEXITY_MULT[params.complexity])}.")

    mult *= AUTHORITY_MULT[params.authority]
    if params.authority != "padrao":
        notes.append(f"Autoridade ({params.authority}): {_fmt_mult(AUTHORITY_MULT[params.authority])}.")

    mult *= SEASONALITY_MULT[params.seasonality]
    if params.seasonality != "normal":
        notes.append(f"Sazonalidade ({params.seasonality}): {_fmt_mult(SEASONALITY_MULT[params.seasonality])}.")

    return mult, notes


def brand_risk_multiplier(params: CommercialTerms) -> Tuple[float, bool]:
    """
    brand size x image risk x strategic gain.
    High image risk can never be discounted below the risk floor.
    Returns (multiplier, floor_applied).
    """
    mult = (
        BRAND_SIZE_MULT[params.brand_size]
        * IMAGE_RISK_MULT[params.image_risk]
        * STRATEGIC_GAIN_MULT[params.strategic_gain]
    )
    if params.image_risk == "alto" and mult < HIGH_IMAGE_RISK_FLOOR:
        return HIGH_IMAGE_RISK_FLOOR, True
    return mult, False


def is_strategic_waiver_eligible(params: CommercialTerms) -> bool:
    return (
        params.allow_strategic_waiver
        and params.brand_size == "grande"
        and params.image_risk == "baixo"
        and params.strategic_gain == "alto"
        and params.authority == "ascensao"
    )


def calibration_is_usable(snapshot: CalibrationSnapshot) -> bool:
    if snapshot.confidence_band == "baixa":
        return False
    return (
        snapshot.segment_sample_size >= CALIBRATION_SEGMENT_MIN_SAMPLES
        or snapshot.creator_sample_size >= CALIBRATION_CREATOR_MIN_SAMPLES
    )


def apply_calibration(
    base_justo: float,
    snapshot: Optional[CalibrationSnapshot],
) -> Tuple[float, CalibrationOutcome, Tuple[float, float]]:
    """
    Returns (calibrated justo, outcome, tier spread).
    The applied factor is clamped to +-25% of the uncalibrated justo.
    """
    if snapshot is None:
        return base_justo, CalibrationOutcome(base_justo=round_currency(base_justo)), DEFAULT_SPREAD

    common = dict(
        enabled=True,
        base_justo=round_currency(base_justo),
        factor_raw=snapshot.factor_raw,
        confidence=snapshot.confidence,
        confidence_band=snapshot.confidence_band,
        segment_sample_size=snapshot.segment_sample_size,
        creator_sample_size=snapshot.creator_sample_size,
        window_days_segment=snapshot.window_days_segment,
        window_days_creator=snapshot.window_days_creator,
        link_quality=snapshot.link_quality,
    )

    if not calibration_is_usable(snapshot):
        outcome = CalibrationOutcome(
            factor_applied=1.0,
            guardrail_applied=False,
            low_confidence_range_expanded=True,
            **common,
        )
        return base_justo, outcome, LOW_CONFIDENCE_SPREAD

    factor_applied = clamp(snapshot.factor_raw, CALIBRATION_MIN_FACTOR, CALIBRATION_MAX_FACTOR)
    outcome = CalibrationOutcome(
        factor_applied=factor_applied,
        guardrail_applied=factor_applied != snapshot.factor_raw,
        low_confidence_range_expanded=False,
        **common,
    )
    return base_justo * factor_applied, outcome, DEFAULT_SPREAD


# ---------------------------------------------
# CALCULATOR
# ---------------------------------------------
def calculate_pricing(
    metrics: CreatorMetricsSnapshot,
    cpm: CpmQuote,
    calibration: Optional[CalibrationSnapshot],
    params: DealParameters,
    brand_risk_enabled: bool = False,
) -> PricingResult:
    """
    Publi pricing calculator.

    Pure: no I/O, same inputs -> same PricingResult.
    - calibration=None means the calibration module is off for this call
    - brand-risk inputs only act when brand_risk_enabled is True
    - out-of-range engagement / CPM / calibration factors are clamped and
      reported, never raised
    """

    # ---- Engagement ----
    engagement = clamp(metrics.avg_engagement_rate, 0.0, ENGAGEMENT_MAX_PERCENT)
    engagement_factor = 1 + engagement / 100

    # ---- Base value ----
    reach = max(metrics.avg_reach, 0.0)
    cpm_value = max(cpm.value, 0.0)
    base_value = (reach / 1000) * cpm_value

    commercial_mult, commercial_notes = commercial_multiplier(params)
    adjustment = commercial_mult * engagement_factor

    risk_mult = 1.0
    floor_applied = False
    risk_notes: List[str] = []
    if brand_risk_enabled:
        risk_mult, floor_applied = brand_risk_multiplier(params)
        risk_notes.append(f"Risco de marca ({params.brand_size}/{params.image_risk}/{params.strategic_gain}): {_fmt_mult(risk_mult)}.")
        if floor_applied:
            risk_notes.append(
                f"{RISK_FLOOR_MARKER}: imagem de alto risco nao aceita desconto estrategico ({_fmt_mult(HIGH_IMAGE_RISK_FLOOR)})."
            )
        if params.content_model != "publicidade_perfil":
            risk_mult *= CONTENT_MODEL_MULT[params.content_model]
            risk_notes.append(
                f"Modelo UGC/whitelabel: {_fmt_mult(CONTENT_MODEL_MULT[params.content_model])}."
            )
    adjustment *= risk_mult

    # ---- Delivery shape ----
    shape_notes: List[str] = []
    if isinstance(params, EventDeal):
        details = params.event_details
        presence_raw = base_value * event_presence_units(details) * adjustment

        coverage = params.event_coverage_quantities
        coverage_units = content_units_for(coverage) * EVENT_COVERAGE_FACTOR if coverage else 0.0
        coverage_raw = base_value * coverage_units * adjustment

        travel, hotel, logistics = estimate_logistics(details)
        base_justo = presence_raw + coverage_raw

        shape_notes.append(f"Presenca em evento: {details.duration_hours}h ({details.travel_tier}).")
        if coverage_units:
            shape_notes.append(f"Cobertura do evento: {round(coverage_units, 2)} unidades de conteudo.")

        breakdown = PricingBreakdown(
            event_presence_justo=round_currency(presence_raw),
            coverage_units=round(coverage_units, 2),
            coverage_justo=round_currency(coverage_raw),
            travel_cost=travel,
            hotel_cost=hotel,
            logistics_suggested=logistics,
        )
        normalized_params = params
    else:
        format_name, quantities, content_units = resolve_content_shape(params)
        base_justo = base_value * content_units * adjustment
        if format_name == "pacote":
            shape_notes.append(f"Pacote: {round(content_units, 2)} unidades de conteudo.")

        breakdown = PricingBreakdown(
            content_units=round(content_units, 2),
            content_justo=round_currency(base_justo),
        )
        normalized_params = params.model_copy(
            update={"format": format_name, "format_quantities": quantities}
        )

    # ---- Calibration ----
    justo_raw, calibration_outcome, (low_spread, high_spread) = apply_calibration(base_justo, calibration)
    calibration_notes: List[str] = []
    if calibration_outcome.low_confidence_range_expanded:
        calibration_notes.append(
            f"Calibracao com baixa confianca: fator historico ignorado e faixa ampliada "
            f"({_fmt_mult(low_spread)} / {_fmt_mult(high_spread)})."
        )
    elif calibration_outcome.guardrail_applied:
        calibration_notes.append(
            f"{GUARDRAIL_MARKER}: fator {calibration_outcome.factor_raw:.2f} limitado a "
            f"{calibration_outcome.factor_applied:.2f}."
        )
    elif calibration_outcome.enabled and calibration_outcome.factor_applied != 1.0:
        calibration_notes.append(f"Calibracao historica aplicada: {_fmt_mult(calibration_outcome.factor_applied)}.")

    # ---- Price band ----
    justo = round_currency(justo_raw)
    estrategico = round_currency(justo * low_spread)
    premium = round_currency(justo * high_spread)

    waiver_applied = brand_risk_enabled and is_strategic_waiver_eligible(params)
    waiver_notes: List[str] = []
    if waiver_applied:
        # after calibration: calibration never un-waives
        estrategico = 0.0
        waiver_notes.append(
            f"{STRATEGIC_WAIVER_MARKER}: valor estrategico zerado (permuta/exposicao); "
            "justo e premium seguem como teto de negociacao."
        )

    # ---- Explanation ----
    input_notes: List[str] = []
    if engagement != metrics.avg_engagement_rate:
        input_notes.append(
            f"Engajamento informado ({metrics.avg_engagement_rate:.2f}%) ajustado para {engagement:.2f}%."
        )
    if cpm_value != cpm.value:
        input_notes.append(f"CPM invalido ({cpm.value:.2f}) ajustado para {format_brl(cpm_value)}.")

    seed_notes: List[str] = []
    if cpm.source == "seed":
        seed_notes.append(f"Aviso: {SEED_CPM_MARKER} (seed), sera refinado com publis reais.")

    explanation_parts = [
        f"CPM base aplicado: {format_brl(cpm_value)}.",
        f"Alcance medio considerado: {format_int_br(reach)} pessoas.",
        f"Fator de engajamento: {_fmt_mult(engagement_factor)}.",
        *input_notes,
        *shape_notes,
        *commercial_notes,
        *risk_notes,
        *calibration_notes,
        *waiver_notes,
        *seed_notes,
    ]
    explanation = " ".join(explanation_parts)

    return PricingResult(
        result=PriceBand(estrategico=estrategico, justo=justo, premium=premium),
        breakdown=breakdown,
        metrics=PricingMetrics(
            reach=int(round(reach)),
            engagement=round_currency(engagement),
            profile_segment=metrics.profile_segment,
        ),
        calibration=calibration_outcome,
        brand_risk=BrandRiskOutcome(
            enabled=brand_risk_enabled,
            multiplier=round(risk_mult, 4),
            floor_applied=floor_applied,
            waiver_applied=waiver_applied,
        ),
        params=normalized_params,
        cpm_applied=cpm_value,
        cpm_source=cpm.source,
        explanation=explanation,
    )
