# logic/van_estimator/coercion.py
from __future__ import annotations

import math
import numbers
import re
from typing import Any

__all__ = [
    "as_number",
    "yes_value",
    "positive_or",
    "YES_TOKENS",
]

YES_TOKENS = frozenset({"x", "yes", "y", "true", "1", "compatible"})

_STRIP_RE = re.compile(r"[$,%\s]")


def as_number(value: Any) -> float:
    """
    Convierte texto o número a float sin lanzar errores.
    Ej: "$1,250.50" -> 1250.5, "12 %" -> 12.0, "abc" -> 0.0.
    Los negativos pasan tal cual; solo lo no finito se vuelve 0.
    """
    if isinstance(value, numbers.Real):
        num = float(value)
        return num if math.isfinite(num) else 0.0
    if isinstance(value, str):
        clean = _STRIP_RE.sub("", value)
        if not clean:
            return 0.0
        try:
            num = float(clean)
        except ValueError:
            return 0.0
        return num if math.isfinite(num) else 0.0
    return 0.0


def yes_value(value: Any) -> bool:
    """Marca de compatibilidad: número > 0 o uno de los tokens de YES_TOKENS."""
    if isinstance(value, numbers.Real):
        return as_number(value) > 0
    return str(value or "").strip().lower() in YES_TOKENS


def positive_or(value: Any, default: float) -> float:
    num = as_number(value)
    return num if num > 0 else default
