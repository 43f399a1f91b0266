import math
import unicodedata
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

TWO_PLACES = Decimal("0.01")
FOUR_PLACES = Decimal("0.0001")


def normalize_text(text: Optional[str]) -> str:
    """
    Lowercases and strips diacritics.
    "Exclusividade de 15 DIAS, mídia paga" -> "exclusividade de 15 dias, midia paga"
    """
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def clamp(value: float, minimum: float, maximum: float) -> float:
    if value is None or not math.isfinite(value):
        return minimum
    if value < minimum:
        return minimum
    if value > maximum:
        return maximum
    return value


def round_currency(value: float) -> float:
    """
    Half-up rounding to cents, without float artefacts
    (184.79999999999998 -> 184.8).
    """
    return float(Decimal(repr(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP))


def round4(value: float) -> float:
    return float(Decimal(repr(value)).quantize(FOUR_PLACES, rounding=ROUND_HALF_UP))


def format_brl(value: float) -> str:
    """
    pt-BR currency rendering: 1234.5 -> "R$ 1.234,50"
    """
    rendered = f"{round_currency(value):,.2f}"
    rendered = rendered.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"R$ {rendered}"


def format_int_br(value: float) -> str:
    return f"{int(round(value)):,}".replace(",", ".")


def join_labels(items: List[str]) -> str:
    """
    ["a"] -> "a"; ["a", "b"] -> "a e b"; ["a", "b", "c"] -> "a, b e c"
    """
    if len(items) <= 1:
        return "".join(items)
    if len(items) == 2:
        return f"{items[0]} e {items[1]}"
    return f"{', '.join(items[:-1])} e {items[-1]}"
