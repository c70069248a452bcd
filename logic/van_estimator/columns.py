# logic/van_estimator/columns.py
from __future__ import annotations

import re
from typing import Any, Iterable, List, Sequence, Tuple

__all__ = [
    "NOT_FOUND",
    "normalize",
    "pick_column",
    "known_tag_columns",
    "denylist_tag_columns",
    "section_key",
    "make_id",
    "label_for_van_type",
    "TYPE_CANDIDATES",
    "DESCRIPTION_CANDIDATES",
    "LINK_CANDIDATES",
    "SIZE_CANDIDATES",
    "PRICE_CANDIDATES",
    "HOURS_CANDIDATES",
    "PRODUCT_CANDIDATES",
    "COST_CANDIDATES",
    "LABOR_HOURS_CANDIDATES",
    "NON_TAG_WORDS",
]

NOT_FOUND = -1

# Candidatos por campo lógico (formato CSV)
TYPE_CANDIDATES = ("type", "types")
DESCRIPTION_CANDIDATES = ("item description", "product", "item", "name")
LINK_CANDIDATES = ("link", "url")
SIZE_CANDIDATES = ("item size", "size")
PRICE_CANDIDATES = ("price per unit", "price", "material cost")
HOURS_CANDIDATES = ("est.hrs", "est hrs", "estimated hours", "labor hours", "hours")

# Formato libro de Excel (una hoja por sección)
PRODUCT_CANDIDATES = ("product", "item description", "item", "name", "description")
COST_CANDIDATES = ("material cost", "price per unit", "price", "cost")
LABOR_HOURS_CANDIDATES = ("labor hours", "est.hrs", "est hrs", "estimated hours", "hours", "hrs")

# Encabezados que nunca son columnas de compatibilidad
NON_TAG_WORDS = (
    "link", "url", "size", "note", "description", "type", "category",
    "qty", "quantity", "markup", "sku", "price", "cost", "hour", "hrs",
)

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def normalize(value: Any) -> str:
    return str(value if value is not None else "").strip().lower()


def pick_column(headers: Sequence[Any], candidates: Iterable[str]) -> int:
    """
    Índice del PRIMER encabezado (en orden de encabezados) que contiene
    cualquiera de los candidatos; NOT_FOUND si ninguno coincide.

    El orden de ``candidates`` no da prioridad: gana el orden de columnas.
    """
    cands = [normalize(c) for c in candidates]
    for idx, header in enumerate(headers):
        key = normalize(header)
        if any(c and c in key for c in cands):
            return idx
    return NOT_FOUND


def known_tag_columns(headers: Sequence[Any], known: Iterable[str]) -> List[Tuple[int, str]]:
    """Columnas cuyo encabezado normalizado es exactamente un tipo de van conocido."""
    vocab = {normalize(k) for k in known}
    return [(idx, normalize(h)) for idx, h in enumerate(headers) if normalize(h) in vocab]


def denylist_tag_columns(
    headers: Sequence[Any],
    exclude: Iterable[int],
    denylist: Iterable[str] = NON_TAG_WORDS,
) -> List[Tuple[int, str]]:
    """
    Inferencia negativa: todo encabezado no vacío que no sea una columna
    ya mapeada ni contenga una palabra de ``denylist``.
    """
    skip = {i for i in exclude if i != NOT_FOUND}
    words = [normalize(w) for w in denylist]
    out: List[Tuple[int, str]] = []
    for idx, header in enumerate(headers):
        key = normalize(header)
        if not key or idx in skip:
            continue
        if any(w in key for w in words):
            continue
        out.append((idx, key))
    return out


def section_key(section_name: str) -> str:
    return _SLUG_RE.sub("-", (section_name or "").lower())


def make_id(section_name: str, row_index: int) -> str:
    return f"{section_key(section_name)}-{row_index}"


def label_for_van_type(value: Any) -> str:
    text = str(value or "").strip()
    if not text:
        return "Unknown"
    return text[0].upper() + text[1:]
