# backend/app/services/deal_intent_parser.py

import re
from typing import List, Optional, Tuple

from app.models.chat_pricing import (
    Assumption,
    ChatPricingParse,
    DeliverableCounts,
    ParsedDealParams,
    ParseSignals,
)
from app.models.pricing import (
    ContentDeal,
    DealParameters,
    EventDeal,
    EventDetails,
    FormatQuantities,
)
from app.utils.helpers import normalize_text


# ---------------------------------------------
# VOCABULARY (matched on normalized text)
# ---------------------------------------------
PRICE_KEYWORDS = [
    "preco", "valor", "cobrar", "precificar",
    "contraproposta", "quanto cobrar", "quanto vale",
]

COMMERCIAL_KEYWORDS = [
    "exclusiv", "uso de imagem", "direitos de uso", "impulsionamento",
    "midia paga", "midiapaga", "orcamento", "proposta",
    "contrato", "patrocinio", "parceria",
]
COMMERCIAL_WORDS = ["ads"]

REELS_UNITS = ["reel", "reels"]
STORIES_UNITS = ["story", "stories", "storie", "storys"]
POSTS_UNITS = ["post", "posts", "feed", "carrossel", "carousel", "foto", "postagem"]
BARE_NUMBER_WORDS = ["um", "uma"]

PACKAGE_KEYWORDS = ["pacote", "combo"]
EVENT_KEYWORDS = ["evento", "presenca", "palestra", "aparicao", "host"]

PAID_MEDIA_KEYWORDS = ["midiapaga", "midia paga", "impulsionamento", "trafego pago", "anuncio"]
PAID_MEDIA_WORDS = ["ads"]
GLOBAL_KEYWORDS = ["uso global", "global", "perpetuo", "perpetua"]
GLOBAL_WORDS = ["tv"]
ORGANIC_KEYWORDS = ["organico", "somente no meu perfil", "apenas no meu perfil"]
INFERRED_USAGE_KEYWORDS = ["uso de imagem", "direitos de uso"]

PROFESSIONAL_KEYWORDS = ["profissional", "edicao avancada", "captacao", "estudio"]
SCRIPT_KEYWORDS = ["roteiro", "script", "aprovacao"]
CELEBRITY_KEYWORDS = ["celebridade", "famos"]
AUTHORITY_KEYWORDS = ["autoridade", "referencia"]
RISING_KEYWORDS = ["ascensao", "crescendo"]
HIGH_SEASON_KEYWORDS = ["black friday", "natal", "alta demanda", "alta temporada"]
LOW_SEASON_KEYWORDS = ["baixa demanda", "baixa temporada", "janeiro"]

INTERNATIONAL_KEYWORDS = ["internacional", "exterior"]
NATIONAL_KEYWORDS = ["nacional", "viagem", "outra cidade"]

EXCLUSIVITY_DAYS = {7: "7d", 15: "15d", 30: "30d", 365: "365d"}
PAID_MEDIA_DAYS = {7: "7d", 15: "15d", 30: "30d", 90: "90d", 180: "180d", 365: "365d"}
EVENT_HOURS = (2, 4, 8)
MAX_QUANTITY = 20

# a day count right before "exclusiv" wins; after "exclusiv", a count that
# belongs to a paid-media window ("e 7 dias de impulsionamento") is skipped
_PAID_MEDIA_TERMS = r"(?:impulsionamento|midia\s?paga|ads|trafego pago)"
_EXCLUSIVITY_DAYS_BEFORE = re.compile(r"(\d{1,3})\s*d(?:ias?)?\s*(?:de\s+)?exclusiv")
_EXCLUSIVITY_DAYS_AFTER = re.compile(
    rf"exclusiv[^0-9]{{0,12}}(\d{{1,3}})\s*d(?!\w*\s+de\s+{_PAID_MEDIA_TERMS})"
)
_EXCLUSIVITY_YEAR = re.compile(
    r"exclusiv\w*\s+(?:de\s+|por\s+)?(?:1|um)\s+ano|(?:1|um)\s+ano\s+(?:de\s+)?exclusiv"
)
_PAID_MEDIA_DAYS = re.compile(
    rf"(\d{{1,3}})\s*d(?:ias?)?\s*(?:de\s+)?{_PAID_MEDIA_TERMS}"
    rf"|{_PAID_MEDIA_TERMS}\s+(?:de\s+|por\s+)(\d{{1,3}})\s*d"
)
_EVENT_HOURS = re.compile(r"(\d{1,2})\s*(?:h|hr|hrs|hora|horas)\b")
_HOTEL_NIGHTS = re.compile(r"(\d{1,2})\s*(?:noite|noites|diaria|diarias)\b")
_POST_SEASON = re.compile(r"\bpos\b")
# "sem tiktok", "nao quero repost no tiktok"
_NEGATED_TAIL = re.compile(r"\b(?:sem|nao)\s+(?:(?:quero|repost|repostar|postar|publicar|no|na|em|de|do|da)\s+){0,3}$")


def _contains_any(normalized: str, keywords: List[str]) -> bool:
    return any(kw in normalized for kw in keywords)


def _has_word(normalized: str, words: List[str]) -> bool:
    # short tokens ("ads", "tv") only count as whole words
    return any(re.search(rf"\b{re.escape(word)}\b", normalized) for word in words)


def _affirmed(normalized: str, keyword: str) -> bool:
    """True when the keyword appears at least once without a negation right before it."""
    return any(
        not _NEGATED_TAIL.search(normalized[:match.start()])
        for match in re.finditer(re.escape(keyword), normalized)
    )


def count_mentions(normalized: str, units: List[str]) -> Tuple[int, bool]:
    """
    "3 stories e 1 story" -> (4, True); "um reel" -> (1, True).
    Returns (count, mentioned).
    """
    group = "|".join(re.escape(u) for u in sorted(units, key=len, reverse=True))
    count = sum(int(m) for m in re.findall(rf"(\d+)\s*(?:{group})\b", normalized))
    mentioned = re.search(rf"\b(?:{group})\b", normalized) is not None
    if not count and mentioned:
        count = 1
    return count, mentioned


def summarize_deliverables(reels: int, stories: int, posts: int) -> Optional[str]:
    parts = []
    for count, singular, plural in (
        (reels, "Reel", "Reels"),
        (stories, "Story", "Stories"),
        (posts, "Post", "Posts"),
    ):
        if count > 0:
            parts.append(f"{count} {plural if count > 1 else singular}")
    return " + ".join(parts) if parts else None


def _first_allowed(matches, allowed: dict) -> Optional[str]:
    for match in matches:
        for group in match.groups():
            if group and int(group) in allowed:
                return allowed[int(group)]
    return None


# ---------------------------------------------
# PARSER
# ---------------------------------------------
def parse_chat_pricing_input(text: Optional[str]) -> ChatPricingParse:
    """
    Reads deal terms from free chat text.

    "3 reels, exclusividade de 15 dias e midia paga" ->
      format=pacote (inferred), quantities reels=3, exclusivity=15d,
      usageRights=midiapaga, paidMediaDuration=30d (assumed)

    Only format / exclusivity / usageRights can end up in `missing`;
    everything else falls back to a baseline recorded in `assumptions`.
    """
    normalized = normalize_text(text)
    assumptions: List[Assumption] = []

    # ---- Deliverables ----
    reels, reels_mentioned = count_mentions(normalized, REELS_UNITS)
    stories, stories_mentioned = count_mentions(normalized, STORIES_UNITS)
    posts, posts_mentioned = count_mentions(normalized, POSTS_UNITS)
    total = reels + stories + posts
    formats_mentioned = sum([reels_mentioned, stories_mentioned, posts_mentioned])
    package_mentioned = _contains_any(normalized, PACKAGE_KEYWORDS)
    event_mentioned = _contains_any(normalized, EVENT_KEYWORDS)

    quantities = None
    if total > 0:
        quantities = FormatQuantities(
            reels=min(reels, MAX_QUANTITY),
            post=min(posts, MAX_QUANTITY),
            stories=min(stories, MAX_QUANTITY),
        )

    delivery_type = "conteudo"
    event_details = None
    coverage = None
    fmt = None
    if event_mentioned:
        delivery_type = "evento"
        fmt = "evento"
        event_details = _parse_event_details(normalized, assumptions)
        coverage = quantities
        quantities = None
    elif package_mentioned:
        fmt = "pacote"
    elif formats_mentioned > 1 or total > 1:
        fmt = "pacote"
        assumptions.append(Assumption(field="format", value="pacote"))
    elif reels_mentioned:
        fmt = "reels"
    elif stories_mentioned:
        fmt = "stories"
    elif posts_mentioned:
        fmt = "post"

    # ---- Exclusivity ----
    exclusivity = None
    if "sem exclusiv" in normalized or "nenhuma exclusiv" in normalized:
        exclusivity = "nenhuma"
    elif "exclusiv" in normalized:
        if _EXCLUSIVITY_YEAR.search(normalized):
            exclusivity = "365d"
        else:
            exclusivity = _first_allowed(
                [
                    *_EXCLUSIVITY_DAYS_BEFORE.finditer(normalized),
                    *_EXCLUSIVITY_DAYS_AFTER.finditer(normalized),
                ],
                EXCLUSIVITY_DAYS,
            )

    # ---- Usage rights ----
    usage_rights = None
    if _contains_any(normalized, PAID_MEDIA_KEYWORDS) or _has_word(normalized, PAID_MEDIA_WORDS):
        usage_rights = "midiapaga"
    elif _contains_any(normalized, GLOBAL_KEYWORDS) or _has_word(normalized, GLOBAL_WORDS):
        usage_rights = "global"
    elif _contains_any(normalized, ORGANIC_KEYWORDS):
        usage_rights = "organico"
    elif _contains_any(normalized, INFERRED_USAGE_KEYWORDS):
        usage_rights = "midiapaga"
        assumptions.append(Assumption(field="usageRights", value="midiapaga"))

    paid_media_duration = None
    if usage_rights in ("midiapaga", "global"):
        paid_media_duration = _first_allowed(_PAID_MEDIA_DAYS.finditer(normalized), PAID_MEDIA_DAYS)
        if paid_media_duration is None:
            assumptions.append(Assumption(field="paidMediaDuration", value="30d"))

    # ---- Baselines ----
    complexity = "simples"
    if _contains_any(normalized, PROFESSIONAL_KEYWORDS):
        complexity = "profissional"
    elif _contains_any(normalized, SCRIPT_KEYWORDS):
        complexity = "roteiro"
    else:
        assumptions.append(Assumption(field="complexity", value=complexity))

    authority = "padrao"
    if _contains_any(normalized, CELEBRITY_KEYWORDS):
        authority = "celebridade"
    elif _contains_any(normalized, AUTHORITY_KEYWORDS):
        authority = "autoridade"
    elif _contains_any(normalized, RISING_KEYWORDS):
        authority = "ascensao"
    else:
        assumptions.append(Assumption(field="authority", value=authority))

    seasonality = "normal"
    if _contains_any(normalized, HIGH_SEASON_KEYWORDS):
        seasonality = "alta"
    elif _contains_any(normalized, LOW_SEASON_KEYWORDS) or _POST_SEASON.search(normalized):
        seasonality = "baixa"
    else:
        assumptions.append(Assumption(field="seasonality", value=seasonality))

    # ---- Missing + signals ----
    missing = []
    if fmt is None:
        missing.append("format")
    if exclusivity is None:
        missing.append("exclusivity")
    if usage_rights is None:
        missing.append("usageRights")

    summary = summarize_deliverables(reels, stories, posts)
    signals = ParseSignals(
        has_deliverables=bool(fmt or summary or package_mentioned),
        has_commercial_terms=(
            _contains_any(normalized, COMMERCIAL_KEYWORDS)
            or _has_word(normalized, COMMERCIAL_WORDS)
            or bool(exclusivity or usage_rights)
        ),
        has_price_intent=_contains_any(normalized, PRICE_KEYWORDS),
    )

    params = ParsedDealParams(
        delivery_type=delivery_type,
        format=fmt,
        format_quantities=quantities,
        exclusivity=exclusivity,
        usage_rights=usage_rights,
        paid_media_duration=paid_media_duration,
        repost_tiktok=_affirmed(normalized, "tiktok"),
        instagram_collab=_affirmed(normalized, "collab"),
        complexity=complexity,
        authority=authority,
        seasonality=seasonality,
        event_details=event_details,
        event_coverage_quantities=coverage,
    )

    return ChatPricingParse(
        params=params,
        missing=missing,
        deliverables_summary=summary,
        deliverables=DeliverableCounts(reels=reels, stories=stories, posts=posts, total=total),
        assumptions=assumptions,
        signals=signals,
    )


def _parse_event_details(normalized: str, assumptions: List[Assumption]) -> EventDetails:
    hours = None
    for match in _EVENT_HOURS.finditer(normalized):
        if int(match.group(1)) in EVENT_HOURS:
            hours = int(match.group(1))
            break
    if hours is None:
        hours = 4
        assumptions.append(Assumption(field="durationHours", value="4"))

    if _contains_any(normalized, INTERNATIONAL_KEYWORDS):
        travel_tier = "internacional"
    elif _contains_any(normalized, NATIONAL_KEYWORDS):
        travel_tier = "nacional"
    else:
        travel_tier = "local"
        assumptions.append(Assumption(field="travelTier", value="local"))

    nights_match = _HOTEL_NIGHTS.search(normalized)
    nights = min(int(nights_match.group(1)), MAX_QUANTITY) if nights_match else 0

    return EventDetails(duration_hours=hours, travel_tier=travel_tier, hotel_nights=nights)


# ---------------------------------------------
# ROUTING GATE
# ---------------------------------------------
def should_handle_chat_pricing(parse: ChatPricingParse, previous_topic: Optional[str] = None) -> bool:
    if parse.signals.has_price_intent:
        return True
    if not parse.signals.has_deliverables:
        return False
    topic_has_price = _contains_any(normalize_text(previous_topic), PRICE_KEYWORDS)
    return parse.signals.has_commercial_terms or topic_has_price


# ---------------------------------------------
# PARSE -> CALCULATOR INPUT
# ---------------------------------------------
def build_deal_parameters(parse: ChatPricingParse) -> DealParameters:
    """
    Turns a complete parse into calculator input.
    Raises ValueError while format / exclusivity / usageRights are missing.
    """
    if parse.missing:
        raise ValueError(f"Missing deal terms: {', '.join(parse.missing)}")

    p = parse.params
    terms = dict(
        exclusivity=p.exclusivity,
        usage_rights=p.usage_rights,
        paid_media_duration=p.paid_media_duration,
        repost_tiktok=p.repost_tiktok,
        instagram_collab=p.instagram_collab,
        complexity=p.complexity,
        authority=p.authority,
        seasonality=p.seasonality,
    )

    if p.delivery_type == "evento":
        return EventDeal(
            event_details=p.event_details or EventDetails(),
            event_coverage_quantities=p.event_coverage_quantities,
            **terms,
        )

    return ContentDeal(
        format=p.format,
        format_quantities=p.format_quantities,
        **terms,
    )
