# logic/van_estimator/formatting.py
from __future__ import annotations

from typing import Any

from .coercion import as_number


def format_money(value: Any) -> str:
    """Formato fijo en USD: 1234.5 -> '$1,234.50', -5 -> '-$5.00'."""
    num = as_number(value)
    sign = "-" if num < 0 else ""
    return f"{sign}${abs(num):,.2f}"


def format_hours(value: Any) -> str:
    return f"{as_number(value):.2f}"


def format_percent(value: Any) -> str:
    return f"{as_number(value):.2f}%"


def vehicle_title(year: Any = "", make: Any = "", model: Any = "") -> str:
    text = " ".join(str(p or "") for p in (year, make, model))
    return " ".join(text.split())
