"""Value formatting shared by template substitution and exports."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any

from reportgen.core.tables import ABSENT

DATE_FORMAT = "%d/%m/%Y"
TIME_FORMAT = "%H:%M:%S"
DATETIME_FORMAT = f"{DATE_FORMAT} {TIME_FORMAT}"

_CENTS = Decimal("0.01")


def format_value(value: Any) -> str:
    """
    Format a cell or parameter value for display.

    - ``None`` / ``ABSENT`` → ``""``
    - dates and datetimes → ``dd/mm/yyyy``
    - ``Decimal`` and ``float`` → two decimals with thousands separators
      (``1234.5`` → ``"1,234.50"``), halves rounded away from zero
    - anything else → ``str(value)``
    """
    if value is None or value is ABSENT:
        return ""
    if isinstance(value, (datetime, date)):
        return value.strftime(DATE_FORMAT)
    if isinstance(value, time):
        return value.strftime(TIME_FORMAT)
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, (Decimal, float)):
        number = Decimal(repr(value)) if isinstance(value, float) else value
        if not number.is_finite():
            return f"{value:,.2f}"
        with localcontext() as ctx:
            ctx.prec = max(ctx.prec, number.adjusted() + 3)
            number = number.quantize(_CENTS, rounding=ROUND_HALF_UP)
        return f"{number:,.2f}"
    return str(value)
