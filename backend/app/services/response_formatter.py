# backend/app/services/response_formatter.py

import re
from typing import List, Optional

from app.models.chat_pricing import ChatPricingParse
from app.models.pricing import PricingResult
from app.services.pricing_engine import FORMAT_WEIGHTS
from app.utils.helpers import format_brl, format_int_br, join_labels

MAX_BUTTONS = 4
BUTTON_PATTERN = re.compile(r"\[BUTTON:\s*([^\]]+?)\s*\]")

# follow-up buttons answered by the bot itself
BUTTON_COUNTER_PROPOSAL = "Montar contraproposta"
BUTTON_ADJUST = "Ajustar premissas"
BUTTON_PROVISIONAL = "Estimar com CPM medio"
BUTTON_CANCEL = "Cancelar"

# provisional estimates are quoted per 1.000 people reached
PROVISIONAL_REACH = 1000
PROVISIONAL_EXAMPLE_MULTIPLIER = 10

# -------------------------------------------------
# LABELS (pt-BR, rendered in chat)
# -------------------------------------------------
FORMAT_LABELS = {
    "reels": "Reels",
    "post": "Post no feed",
    "stories": "Stories",
    "pacote": "Pacote multiformato",
    "evento": "Presenca em evento",
}
FORMAT_UNIT_LABELS = {
    "reels": "Reel",
    "post": "Post",
    "stories": "Story",
}
EXCLUSIVITY_LABELS = {
    "nenhuma": "Sem exclusividade",
    "7d": "Exclusividade 7 dias",
    "15d": "Exclusividade 15 dias",
    "30d": "Exclusividade 30 dias",
    "365d": "Exclusividade 1 ano",
}
USAGE_LABELS = {
    "organico": "Uso organico",
    "midiapaga": "Midia paga/impulsionamento",
    "global": "Uso global/perpetuo",
}
COMPLEXITY_LABELS = {
    "simples": "Producao simples",
    "roteiro": "Com roteiro",
    "profissional": "Producao profissional",
}
AUTHORITY_LABELS = {
    "padrao": "Autoridade padrao",
    "ascensao": "Em ascensao",
    "autoridade": "Autoridade",
    "celebridade": "Celebridade",
}
SEASONALITY_LABELS = {
    "normal": "Sazonalidade normal",
    "alta": "Alta demanda",
    "baixa": "Baixa demanda",
}
TRAVEL_TIER_LABELS = {
    "local": "local",
    "nacional": "viagem nacional",
    "internacional": "viagem internacional",
}

ASSUMPTION_TEMPLATES = {
    "format": "formato {value} (por multiplas entregas)",
    "usageRights": "uso de imagem como midia paga",
    "paidMediaDuration": "impulsionamento por {value}",
    "complexity": "producao {value}",
    "authority": "autoridade {value}",
    "seasonality": "sazonalidade {value}",
    "durationHours": "evento de {value}h",
    "travelTier": "evento {value}",
}


# -------------------------------------------------
# BUTTON TOKENS
# -------------------------------------------------
def extract_buttons(text: str) -> List[str]:
    return BUTTON_PATTERN.findall(text or "")


def strip_buttons(text: str) -> str:
    cleaned = BUTTON_PATTERN.sub("", text or "")
    return re.sub(r"\n{3,}", "\n\n", cleaned).strip()


def _button_lines(labels: List[str]) -> str:
    return "\n".join(f"[BUTTON: {label}]" for label in labels[:MAX_BUTTONS])


def render_assumptions(parse: ChatPricingParse) -> Optional[str]:
    if not parse.assumptions:
        return None
    rendered = []
    for item in parse.assumptions:
        template = ASSUMPTION_TEMPLATES.get(item.field, f"{item.field} = {{value}}")
        rendered.append(template.format(value=item.value))
    return f"Assumi: {', '.join(rendered)}."


# -------------------------------------------------
# MARGINAL TABLE
# -------------------------------------------------
def marginal_unit_value(result: PricingResult) -> Optional[float]:
    """
    Value of one weight-1.0 content unit, derived from the final justo.
    Events price coverage separately, so their unit comes from coverageJusto.
    """
    breakdown = result.breakdown
    if result.params.delivery_type == "evento":
        if breakdown.coverage_units <= 0:
            return None
        return breakdown.coverage_justo * result.calibration.factor_applied / breakdown.coverage_units
    if breakdown.content_units <= 0:
        return None
    return result.result.justo / breakdown.content_units


def _table_formats(result: PricingResult, parse: ChatPricingParse) -> List[str]:
    preferred = []
    if parse.deliverables.reels > 0:
        preferred.append("reels")
    if parse.deliverables.stories > 0:
        preferred.append("stories")
    if parse.deliverables.posts > 0:
        preferred.append("post")
    if not preferred and result.params.format in FORMAT_UNIT_LABELS:
        preferred.append(result.params.format)
    return preferred or ["reels", "stories", "post"]


def build_marginal_table(result: PricingResult, parse: ChatPricingParse) -> List[str]:
    unit_value = marginal_unit_value(result)
    if unit_value is None:
        return [
            "Presenca sem cobertura de conteudo: me diga se quer incluir Reels ou Stories "
            "para eu somar ao valor."
        ]

    lines = ["Escala por quantidade (valor justo, mesmas premissas):"]
    for fmt in _table_formats(result, parse):
        lines.append(f"- +1 {FORMAT_UNIT_LABELS[fmt]}: +{format_brl(unit_value * FORMAT_WEIGHTS[fmt])}.")
    lines.append(
        f"Peso por formato: Reel ({FORMAT_WEIGHTS['reels']:.1f}x) > "
        f"Post ({FORMAT_WEIGHTS['post']:.1f}x) > Story ({FORMAT_WEIGHTS['stories']:.1f}x)."
    )
    return lines


def _parameter_summary(params) -> str:
    parts = [
        FORMAT_LABELS[params.format],
        EXCLUSIVITY_LABELS[params.exclusivity],
        USAGE_LABELS[params.usage_rights],
        COMPLEXITY_LABELS[params.complexity],
        AUTHORITY_LABELS[params.authority],
        SEASONALITY_LABELS[params.seasonality],
    ]
    if params.paid_media_duration:
        parts.insert(3, f"Impulsionamento {params.paid_media_duration}")
    return " | ".join(parts)


# -------------------------------------------------
# REPLIES
# -------------------------------------------------
def build_chat_pricing_response(result: PricingResult, parse: ChatPricingParse) -> str:
    params = result.params
    band = result.result

    if parse.deliverables_summary:
        deliverables_line = f"Pacote detectado: {parse.deliverables_summary}."
    else:
        deliverables_line = f"Entrega detectada: {FORMAT_LABELS[params.format]}."

    diagnosis = ["### Diagnostico", deliverables_line]
    if params.format == "pacote":
        diagnosis.append("Usei o modo pacote da calculadora para esse combo.")
    diagnosis += [
        "Faixa sugerida pela calculadora:",
        f"- Estrategico: {format_brl(band.estrategico)}",
        f"- Justo: {format_brl(band.justo)}",
        f"- Premium: {format_brl(band.premium)}",
    ]
    if result.brand_risk.waiver_applied:
        diagnosis.append(
            "Estrategico zerado: a marca paga em exposicao, mas justo e premium continuam "
            "sendo o teto da negociacao."
        )
    if result.calibration.low_confidence_range_expanded:
        diagnosis.append("Faixa ampliada: ainda ha poucas publis parecidas para calibrar com seguranca.")

    plan = ["### Plano Estrategico", result.explanation, f"Parametros: {_parameter_summary(params)}."]
    assumptions_line = render_assumptions(parse)
    if assumptions_line:
        plan.append(assumptions_line)
    if params.delivery_type == "evento" and result.breakdown.logistics_suggested > 0:
        details = params.event_details
        plan.append(
            f"Logistica sugerida ({TRAVEL_TIER_LABELS[details.travel_tier]}, "
            f"{details.hotel_nights} noite(s)): {format_brl(result.breakdown.logistics_suggested)}, "
            "cobrada a parte e fora da faixa acima."
        )
    if result.cpm_source == "seed":
        plan.append("Aviso: CPM inicial de mercado (sera refinado com publis reais).")

    logic = ["### Logica Estrategica", *build_marginal_table(result, parse)]

    next_step = [
        "### Proximo Passo",
        f"Quer que eu monte a contraproposta usando o valor justo ({format_brl(band.justo)}) "
        "ou ajusto alguma premissa?",
        "",
        _button_lines([BUTTON_COUNTER_PROPOSAL, BUTTON_ADJUST]),
    ]

    return "\n".join([*diagnosis, "", *plan, "", *logic, "", *next_step])


def build_chat_pricing_clarification(missing: List[str]) -> str:
    parts = []
    questions = []
    buttons = []
    if "format" in missing:
        parts.append("a entrega exata (Reels, Stories, Post ou pacote)")
        questions.append("Qual a entrega exata?")
        buttons += ["Reels", "Stories"]
    if "exclusivity" in missing:
        parts.append("a exclusividade (nenhuma/7d/15d/30d)")
        questions.append("Tem exclusividade?")
        buttons += [EXCLUSIVITY_LABELS["nenhuma"], EXCLUSIVITY_LABELS["30d"]]
    if "usageRights" in missing:
        parts.append("o uso de imagem/impulsionamento (organico, midia paga ou global)")
        questions.append("Uso de imagem/impulsionamento?")
        buttons += ["Uso organico", "Midia paga"]

    if parts:
        message = f"Faltam {join_labels(parts)} para eu calcular a precificacao."
    else:
        message = "Faltam detalhes para eu calcular a precificacao."

    return "\n".join([
        "### Diagnostico",
        message,
        "",
        "### Plano Estrategico",
        "Com esses detalhes eu aplico a calculadora e te devolvo a faixa sugerida.",
        "",
        "### Logica Estrategica",
        "Complexidade, autoridade e sazonalidade eu assumo no padrao se voce nao disser nada.",
        "",
        "### Proximo Passo",
        " ".join(questions) or "Pode detalhar o pacote?",
        "",
        _button_lines(buttons),
    ])


def build_chat_pricing_insufficient_data(message: Optional[str] = None) -> str:
    return "\n".join([
        "### Diagnostico",
        message or "Nao tenho metricas suficientes para aplicar a calculadora agora.",
        "",
        "### Plano Estrategico",
        "Se quiser, posso fazer uma estimativa provisoria com CPM medio de mercado.",
        "",
        "### Logica Estrategica",
        "Sem alcance medio confiavel a faixa ficaria sem base; o CPM de mercado serve so como referencia.",
        "",
        "### Proximo Passo",
        "Quer uma estimativa provisoria agora?",
        "",
        _button_lines([BUTTON_PROVISIONAL, BUTTON_CANCEL]),
    ])


def build_chat_pricing_provisional(result: PricingResult, parse: ChatPricingParse) -> str:
    """
    Band for PROVISIONAL_REACH people at the market CPM.
    No creator metrics behind it, so it is always quoted per reach.
    """
    band = result.result
    example_reach = PROVISIONAL_REACH * PROVISIONAL_EXAMPLE_MULTIPLIER
    per_reach = f"por {format_int_br(PROVISIONAL_REACH)} pessoas alcancadas"

    if parse.deliverables_summary:
        deliverables_line = f"Pacote detectado: {parse.deliverables_summary}."
    else:
        deliverables_line = f"Entrega detectada: {FORMAT_LABELS[result.params.format]}."

    plan = [
        "### Plano Estrategico",
        f"Usei o CPM medio de mercado ({format_brl(result.cpm_applied)}) no lugar do seu alcance real.",
        f"Parametros: {_parameter_summary(result.params)}.",
    ]
    assumptions_line = render_assumptions(parse)
    if assumptions_line:
        plan.append(assumptions_line)
    if result.cpm_source == "seed":
        plan.append("Aviso: CPM inicial de mercado (sera refinado com publis reais).")

    return "\n".join([
        "### Diagnostico",
        deliverables_line,
        f"Estimativa provisoria {per_reach}:",
        f"- Estrategico: {format_brl(band.estrategico)}",
        f"- Justo: {format_brl(band.justo)}",
        f"- Premium: {format_brl(band.premium)}",
        "Faixa ampliada: sem metricas suas a estimativa tem baixa confianca.",
        "",
        *plan,
        "",
        "### Logica Estrategica",
        "O valor cresce na mesma proporcao do alcance medio.",
        f"Exemplo: com {format_int_br(example_reach)} pessoas alcancadas, o justo fica em "
        f"{format_brl(band.justo * PROVISIONAL_EXAMPLE_MULTIPLIER)}.",
        "",
        "### Proximo Passo",
        "Com novas publis registradas eu troco essa estimativa pela faixa calibrada no seu alcance.",
        "",
        _button_lines([BUTTON_ADJUST]),
    ])


def build_counterproposal(result: PricingResult) -> str:
    """
    Message the creator can send to the brand, anchored on justo.
    """
    band = result.result
    params = result.params

    if band.estrategico > 0:
        floor_line = (
            f"Piso da negociacao: {format_brl(band.estrategico)}. Abaixo disso, so com contrapartida "
            "(prazo maior, menos exclusividade ou uso de imagem restrito)."
        )
    else:
        floor_line = "Sem piso em dinheiro: abaixo do justo, so em troca de exposicao combinada por escrito."

    return "\n".join([
        "### Diagnostico",
        f"Contraproposta ancorada no valor justo ({format_brl(band.justo)}).",
        "",
        "### Plano Estrategico",
        "Sugestao de mensagem para a marca:",
        (
            f"\"Oi, tudo bem? Agradeco o convite! Para {FORMAT_LABELS[params.format].lower()} "
            f"({EXCLUSIVITY_LABELS[params.exclusivity].lower()}, {USAGE_LABELS[params.usage_rights].lower()}) "
            f"meu investimento e de {format_brl(band.justo)}. Se fizer sentido, sigo com o briefing.\""
        ),
        "",
        "### Logica Estrategica",
        f"Teto: {format_brl(band.premium)} se a marca pedir mais entregas ou direitos.",
        floor_line,
        "",
        "### Proximo Passo",
        "Quer mudar alguma premissa antes de enviar?",
        "",
        _button_lines([BUTTON_ADJUST]),
    ])


def build_adjust_prompt() -> str:
    return "\n".join([
        "### Proximo Passo",
        "Me mande o pedido de novo com o que muda (entrega, exclusividade ou uso de imagem) "
        "e eu recalculo a faixa.",
        "Exemplo: \"quanto cobrar por 2 reels, exclusividade de 15 dias, midia paga por 90 dias?\"",
    ])


def build_missing_context_reply() -> str:
    """A follow-up button arrived but there is no quote or pending request behind it."""
    return "\n".join([
        "### Proximo Passo",
        "Nao encontrei um pedido de preco recente para continuar.",
        "Me diga a entrega e as condicoes, por exemplo: \"quanto cobrar por 1 reel, sem exclusividade, uso organico?\"",
    ])
