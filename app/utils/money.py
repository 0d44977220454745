# app/utils/money.py
"""
Montos guardados como texto con prefijo de moneda (ej. "$50").
Todo el parseo pasa por aquí; no se comparan cadenas crudas.
"""
import re
from typing import Any

# Único lugar donde se eliminan los prefijos/sufijos de moneda.
_CURRENCY_NOISE = re.compile(r"[^0-9.\-]")
_MONEY_STRING = re.compile(r"^\$\d+(?:\.\d{1,2})?$")


class MoneyFormatError(ValueError):
    """El texto no contiene un monto numérico válido."""


def parse_money(value: Any) -> float:
    """
    Convierte un monto con prefijo ("$50", "$ 1,200.50", "45") en float.

    Raises:
        MoneyFormatError: si no queda un número válido tras limpiar el texto.
    """
    if isinstance(value, bool):
        raise MoneyFormatError(f"Monto inválido: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        raise MoneyFormatError(f"Monto inválido: {value!r}")

    cleaned = _CURRENCY_NOISE.sub("", value)
    if not cleaned:
        raise MoneyFormatError(f"Monto inválido: {value!r}")
    try:
        return float(cleaned)
    except ValueError:
        raise MoneyFormatError(f"Monto inválido: {value!r}")


def is_valid_money_string(value: str) -> bool:
    """Formato aceptado al escribir una suscripción: `$50` o `$50.00`."""
    return isinstance(value, str) and bool(_MONEY_STRING.match(value.strip()))


def format_money(amount: float) -> str:
    if float(amount).is_integer():
        return f"${int(amount)}"
    return f"${amount:.2f}"
