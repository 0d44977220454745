# app/utils/date_utils.py
"""
Aritmética de fechas de calendario en una zona horaria.

Todas las fechas se manejan como cadenas ISO `YYYY-MM-DD`. Los desplazamientos
se calculan sobre fechas de calendario (nunca sobre instantes), de modo que los
cambios de horario (DST) y los fines de mes no desplazan el resultado.
"""
import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil.relativedelta import relativedelta

from ..core.config import DEFAULT_TIMEZONE

ISO_DATE_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


def parse_iso_date(value: str) -> date:
    """
    Convierte `YYYY-MM-DD` en `date`.

    Raises:
        ValueError: si el formato no es exacto o la fecha no existe (ej. 2026-02-30).
    """
    if not isinstance(value, str):
        raise ValueError("Fecha ISO inválida (use YYYY-MM-DD)")
    match = ISO_DATE_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Fecha ISO inválida (use YYYY-MM-DD): {value}")
    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        raise ValueError(f"Fecha ISO inválida (use YYYY-MM-DD): {value}")


def is_valid_iso_date(value: str) -> bool:
    try:
        parse_iso_date(value)
        return True
    except ValueError:
        return False


def validate_timezone(name: str) -> str:
    """Valida un nombre de zona IANA y lo devuelve sin cambios."""
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, TypeError):
        raise ValueError(f"Zona horaria inválida: {name}")
    return name


def format_date_in_timezone(instant: datetime, tz: str = DEFAULT_TIMEZONE) -> str:
    """Fecha local (calendario) de un instante en la zona indicada. Naive = UTC."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(ZoneInfo(tz)).date().isoformat()


def start_of_day_tz(value: Union[str, datetime], tz: str = DEFAULT_TIMEZONE) -> str:
    if isinstance(value, str):
        return parse_iso_date(value).isoformat()
    return format_date_in_timezone(value, tz)


def today_in_timezone(
    tz: str = DEFAULT_TIMEZONE, reference: Optional[datetime] = None
) -> str:
    """El "hoy" de la zona configurada."""
    return format_date_in_timezone(reference or datetime.now(timezone.utc), tz)


def add_days(value: str, days: int) -> str:
    return (parse_iso_date(value) + timedelta(days=days)).isoformat()


def add_months(value: str, months: int = 1) -> str:
    # relativedelta conserva el día del mes y lo recorta al último día si no existe
    return (parse_iso_date(value) + relativedelta(months=months)).isoformat()
