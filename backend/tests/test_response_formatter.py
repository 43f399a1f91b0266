"""
Tests: chat reply formatter.

Run with:
    pytest backend/tests/test_response_formatter.py -v
"""

import pytest

from app.models.pricing import CalibrationSnapshot, CpmQuote, CreatorMetricsSnapshot
from app.services.deal_intent_parser import build_deal_parameters, parse_chat_pricing_input
from app.services.pricing_engine import calculate_pricing
from app.services.response_formatter import (
    build_adjust_prompt,
    build_chat_pricing_clarification,
    build_chat_pricing_insufficient_data,
    build_chat_pricing_provisional,
    build_chat_pricing_response,
    build_counterproposal,
    extract_buttons,
    marginal_unit_value,
    strip_buttons,
)
from app.utils.helpers import format_brl

METRICS = CreatorMetricsSnapshot(avg_reach=10000, avg_engagement_rate=0)
CPM = CpmQuote(value=10, source="dynamic")

SECTIONS = ["### Diagnostico", "### Plano Estrategico", "### Logica Estrategica", "### Proximo Passo"]


def priced(text, cpm=CPM, calibration=None, brand_risk=False):
    parse = parse_chat_pricing_input(text)
    result = calculate_pricing(METRICS, cpm, calibration, build_deal_parameters(parse), brand_risk)
    return result, parse


def assert_sections_in_order(reply):
    positions = [reply.index(section) for section in SECTIONS]
    assert positions == sorted(positions)


class TestCurrency:
    @pytest.mark.parametrize("value,expected", [
        (1234.5, "R$ 1.234,50"),
        (140, "R$ 140,00"),
        (184.8, "R$ 184,80"),
        (0, "R$ 0,00"),
        (1234567.891, "R$ 1.234.567,89"),
    ])
    def test_format_brl(self, value, expected):
        assert format_brl(value) == expected


class TestPricedReply:
    def test_four_sections_and_band(self):
        result, parse = priced("1 reel + 3 stories, sem exclusividade, organico")
        reply = build_chat_pricing_response(result, parse)
        assert_sections_in_order(reply)
        assert "- Justo: R$ 380,00" in reply
        assert "- Estrategico: R$ 285,00" in reply
        assert "- Premium: R$ 532,00" in reply
        assert "Pacote detectado: 1 Reel + 3 Stories." in reply

    def test_buttons(self):
        result, parse = priced("1 reel, sem exclusividade, organico")
        buttons = extract_buttons(build_chat_pricing_response(result, parse))
        assert buttons == ["Montar contraproposta", "Ajustar premissas"]

    def test_marginal_table_uses_final_justo(self):
        result, parse = priced("1 reel + 3 stories, sem exclusividade, organico")
        assert marginal_unit_value(result) == pytest.approx(100)
        reply = build_chat_pricing_response(result, parse)
        assert "- +1 Reel: +R$ 140,00." in reply
        assert "- +1 Story: +R$ 80,00." in reply
        assert "Post" not in reply.split("### Logica Estrategica")[1].split("Peso por formato")[0]

    def test_marginal_table_follows_calibration(self):
        calibration = CalibrationSnapshot(
            factor_raw=1.1, confidence=0.9, confidence_band="alta",
            segment_sample_size=40, creator_sample_size=12,
        )
        result, parse = priced("1 reel, sem exclusividade, organico", calibration=calibration)
        assert result.result.justo == pytest.approx(154)
        assert "- +1 Reel: +R$ 154,00." in build_chat_pricing_response(result, parse)

    def test_event_coverage_table(self):
        result, parse = priced("evento de 4h, viagem nacional, 2 noites, com 1 reel, sem exclusividade, organico")
        assert marginal_unit_value(result) == pytest.approx(126 / 1.26)
        reply = build_chat_pricing_response(result, parse)
        assert "- +1 Reel: +R$ 140,00." in reply
        assert "R$ 2.100,00" in reply
        assert "fora da faixa" in reply

    def test_event_without_coverage(self):
        result, parse = priced("evento de 8h, sem exclusividade, organico")
        assert marginal_unit_value(result) is None
        assert "sem cobertura de conteudo" in build_chat_pricing_response(result, parse)

    def test_seed_disclaimer(self):
        result, parse = priced("1 reel, sem exclusividade, organico", cpm=CpmQuote(value=25, source="seed"))
        assert "CPM inicial de mercado" in build_chat_pricing_response(result, parse)

    def test_no_disclaimer_for_dynamic_cpm(self):
        result, parse = priced("1 reel, sem exclusividade, organico")
        assert "CPM inicial de mercado" not in build_chat_pricing_response(result, parse)

    def test_assumptions_rendered(self):
        result, parse = priced("1 reel + 3 stories, sem exclusividade, midia paga")
        reply = build_chat_pricing_response(result, parse)
        assert "Assumi: formato pacote (por multiplas entregas)" in reply
        assert "impulsionamento por 30d" in reply
        assert "producao simples" in reply

    def test_low_confidence_surfaced(self):
        result, parse = priced(
            "1 reel, sem exclusividade, organico",
            calibration=CalibrationSnapshot(),
        )
        assert "Faixa ampliada" in build_chat_pricing_response(result, parse)


class TestClarification:
    def test_all_missing(self):
        reply = build_chat_pricing_clarification(["format", "exclusivity", "usageRights"])
        assert_sections_in_order(reply)
        assert reply.startswith("### Diagnostico\nFaltam a entrega exata")
        assert " e o uso de imagem" in reply
        assert len(extract_buttons(reply)) == 4

    def test_only_exclusivity_missing(self):
        reply = build_chat_pricing_clarification(["exclusivity"])
        assert "Tem exclusividade?" in reply
        assert extract_buttons(reply) == ["Sem exclusividade", "Exclusividade 30 dias"]

    def test_nothing_missing(self):
        reply = build_chat_pricing_clarification([])
        assert "Faltam detalhes" in reply
        assert extract_buttons(reply) == []


class TestInsufficientData:
    def test_default_message(self):
        reply = build_chat_pricing_insufficient_data()
        assert_sections_in_order(reply)
        assert "Nao tenho metricas suficientes" in reply
        assert "estimativa provisoria agora" in reply
        assert extract_buttons(reply) == ["Estimar com CPM medio", "Cancelar"]

    def test_custom_message(self):
        assert "Conecte o Instagram" in build_chat_pricing_insufficient_data("Conecte o Instagram primeiro.")


class TestClarificationButtonsResolve:
    """Every offered button, sent back as text, fills the field it was offered for."""

    @pytest.mark.parametrize("missing, seed, field", [
        ("format", "quanto cobrar, sem exclusividade, organico?", "format"),
        ("exclusivity", "quanto cobrar por 1 reel, uso organico?", "exclusivity"),
        ("usageRights", "quanto cobrar por 1 reel, sem exclusividade?", "usage_rights"),
    ])
    def test_each_button_fills_its_field(self, missing, seed, field):
        assert parse_chat_pricing_input(seed).missing == [missing]
        for button in extract_buttons(build_chat_pricing_clarification([missing])):
            parse = parse_chat_pricing_input(f"{seed} {button}")
            assert parse.missing == [], button
            assert getattr(parse.params, field) is not None

    def test_thirty_day_button_reads_as_30d(self):
        parse = parse_chat_pricing_input("quanto cobrar por 1 reel, uso organico? Exclusividade 30 dias")
        assert parse.params.exclusivity == "30d"


class TestProvisional:
    def provisional(self, cpm=CPM):
        parse = parse_chat_pricing_input("quanto cobrar por 1 reel, sem exclusividade, organico?")
        result = calculate_pricing(
            CreatorMetricsSnapshot(avg_reach=1000),
            cpm,
            CalibrationSnapshot(),
            build_deal_parameters(parse),
        )
        return build_chat_pricing_provisional(result, parse)

    def test_band_per_thousand_reached(self):
        reply = self.provisional()
        assert_sections_in_order(reply)
        assert "Estimativa provisoria por 1.000 pessoas alcancadas" in reply
        assert "- Estrategico: R$ 9,10" in reply
        assert "- Justo: R$ 14,00" in reply
        assert "- Premium: R$ 22,40" in reply
        assert "com 10.000 pessoas alcancadas, o justo fica em R$ 140,00" in reply
        assert extract_buttons(reply) == ["Ajustar premissas"]

    def test_seed_disclaimer(self):
        reply = self.provisional(cpm=CpmQuote(value=10, source="seed"))
        assert "CPM inicial de mercado" in reply


class TestCounterproposal:
    def test_anchored_on_justo(self):
        result, _ = priced("1 reel, sem exclusividade, organico")
        reply = build_counterproposal(result)
        assert_sections_in_order(reply)
        assert "ancorada no valor justo (R$ 140,00)" in reply
        assert "meu investimento e de R$ 140,00" in reply
        assert "Teto: R$ 196,00" in reply
        assert "Piso da negociacao: R$ 105,00" in reply
        assert extract_buttons(reply) == ["Ajustar premissas"]

    def test_waived_floor(self):
        result, _ = priced("1 reel, sem exclusividade, organico")
        waived = result.model_copy(update={"result": result.result.model_copy(update={"estrategico": 0.0})})
        reply = build_counterproposal(waived)
        assert "Sem piso em dinheiro" in reply
        assert "Piso da negociacao" not in reply

    def test_adjust_prompt_has_no_buttons(self):
        reply = build_adjust_prompt()
        assert "eu recalculo" in reply
        assert extract_buttons(reply) == []


class TestButtonTokens:
    def test_strip_buttons(self):
        text = "### Proximo Passo\nBora?\n\n[BUTTON: Sim]\n[BUTTON: Nao]"
        assert extract_buttons(text) == ["Sim", "Nao"]
        assert strip_buttons(text) == "### Proximo Passo\nBora?"
