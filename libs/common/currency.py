"""Currency conversion utilities for Mercafly.

Internal storage unit: centavos (smallest BRL unit, 100 centavos = R$1).
External APIs may send reais as strings or floats (e.g. "15.50").
Display unit: "R$ 1.234,56".
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENTAVOS_PER_REAL: int = 100


def reais_to_centavos(reais: str | float | int | Decimal) -> int:
    """Convert a reais amount to centavos (round half-up).

    Raises ValueError when the value cannot be parsed as a number.
    """
    try:
        value = Decimal(str(reais)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {reais!r}") from exc
    return int(value * CENTAVOS_PER_REAL)


def centavos_to_reais(centavos: int) -> Decimal:
    """Convert centavos to reais. 100 centavos = R$1."""
    return (Decimal(centavos) / CENTAVOS_PER_REAL).quantize(Decimal("0.01"))


def format_brl(centavos: int) -> str:
    """Format centavos as a BRL string, e.g. 123456 -> 'R$ 1.234,56'."""
    reais = centavos_to_reais(centavos)
    formatted = f"{reais:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    return f"R$ {formatted}"
