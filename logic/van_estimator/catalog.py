"""
Construcción del catálogo normalizado.

Tres entradas aceptadas, todas producen un :class:`Catalog` inmutable:

* ``build_catalog``: grilla CSV (una columna ``Type`` define la sección y
  las columnas de compatibilidad son las de un vocabulario cerrado).
* ``build_workbook_catalog``: libro de Excel, una hoja por sección; las
  columnas de compatibilidad se infieren por descarte (lista de exclusión).
* ``catalog_from_dict``: JSON ya normalizado (fuente de respaldo).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .coercion import as_number, yes_value
from .columns import (
    COST_CANDIDATES,
    DESCRIPTION_CANDIDATES,
    HOURS_CANDIDATES,
    LABOR_HOURS_CANDIDATES,
    LINK_CANDIDATES,
    NOT_FOUND,
    PRICE_CANDIDATES,
    PRODUCT_CANDIDATES,
    SIZE_CANDIDATES,
    TYPE_CANDIDATES,
    denylist_tag_columns,
    known_tag_columns,
    make_id,
    normalize,
    pick_column,
)
from .models import Catalog, Item, Section
from .settings import EstimatorSettings
from .tabular import cell_text, split_header

logger = logging.getLogger(__name__)

SETTINGS_SHEETS = ("settings", "config", "rates")


class CatalogError(ValueError):
    """El origen no tiene la forma mínima para armar un catálogo."""


def _cell(row: Sequence[Any], idx: int) -> Any:
    if idx == NOT_FOUND or idx >= len(row):
        return ""
    return row[idx]


def _non_negative(value: Any) -> float:
    return max(0.0, as_number(value))


class _SectionGrouper:
    """Agrupa ítems por sección respetando el orden de aparición."""

    def __init__(self) -> None:
        self._order: List[str] = []
        self._items: Dict[str, List[Item]] = {}
        self._tags: List[str] = []

    def add(self, section_name: str, item: Item) -> None:
        if section_name not in self._items:
            self._order.append(section_name)
            self._items[section_name] = []
        self._items[section_name].append(item)
        self.note_tags(item.compatible)

    def ensure(self, section_name: str) -> None:
        if section_name not in self._items:
            self._order.append(section_name)
            self._items[section_name] = []

    def note_tags(self, tags: Iterable[str]) -> None:
        for tag in tags:
            if tag not in self._tags:
                self._tags.append(tag)

    @property
    def tags(self) -> Tuple[str, ...]:
        return tuple(self._tags)

    def sections(self) -> Tuple[Section, ...]:
        return tuple(Section(name=n, items=tuple(self._items[n])) for n in self._order)


def _rates(labor: Any, tax: Any, settings: EstimatorSettings) -> Tuple[float, float]:
    labor_rate = as_number(labor) if cell_text(labor) else settings.default_labor_rate
    tax_rate = as_number(tax) if cell_text(tax) else settings.default_tax_rate
    return max(0.0, labor_rate), max(0.0, tax_rate)


# ---------------------------- CSV ---------------------------- #


def build_catalog(
    headers: Sequence[Any],
    body_rows: Sequence[Sequence[Any]],
    settings: Optional[EstimatorSettings] = None,
) -> Catalog:
    settings = settings or EstimatorSettings()
    if not headers:
        raise CatalogError("El origen CSV no devolvió filas")
    headers = [cell_text(h) for h in headers]

    type_col = pick_column(headers, TYPE_CANDIDATES)
    desc_col = pick_column(headers, DESCRIPTION_CANDIDATES)
    link_col = pick_column(headers, LINK_CANDIDATES)
    size_col = pick_column(headers, SIZE_CANDIDATES)
    price_col = pick_column(headers, PRICE_CANDIDATES)
    hours_col = pick_column(headers, HOURS_CANDIDATES)

    if type_col == NOT_FOUND or desc_col == NOT_FOUND:
        raise CatalogError("Faltan las columnas obligatorias Type e Item Description")

    tag_cols = known_tag_columns(headers, settings.known_van_types)

    grouper = _SectionGrouper()
    dropped = 0
    for row_index, row in enumerate(body_rows):
        section_name = cell_text(_cell(row, type_col))
        description = cell_text(_cell(row, desc_col))
        if not section_name or not description:
            dropped += 1
            continue

        grouper.add(
            section_name,
            Item(
                id=make_id(section_name, row_index),
                description=description,
                link=cell_text(_cell(row, link_col)),
                item_size=cell_text(_cell(row, size_col)),
                price_per_unit=_non_negative(_cell(row, price_col)),
                estimated_hours=_non_negative(_cell(row, hours_col)),
                compatible=tuple(dict.fromkeys(key for idx, key in tag_cols if yes_value(_cell(row, idx)))),
            ),
        )

    if dropped:
        logger.debug("Se descartaron %d filas sin sección o descripción", dropped)

    labor_rate, tax_rate = _rates(settings.default_labor_rate, settings.default_tax_rate, settings)
    return Catalog(
        sections=grouper.sections(),
        van_types=tuple(dict.fromkeys(key for _, key in tag_cols)),
        default_labor_rate=labor_rate,
        default_tax_rate=tax_rate,
    )


def build_catalog_from_grid(grid: Sequence[Sequence[Any]], settings: Optional[EstimatorSettings] = None) -> Catalog:
    if not grid:
        raise CatalogError("El origen CSV no devolvió filas")
    headers, body = split_header(grid)
    return build_catalog(headers, body, settings)


# ---------------------------- LIBRO EXCEL ---------------------------- #


def _read_settings_sheet(grid: Sequence[Sequence[Any]]) -> Tuple[Any, Any]:
    labor: Any = None
    tax: Any = None
    for row in grid:
        if len(row) < 2:
            continue
        key = normalize(cell_text(row[0]))
        if "labor" in key and labor is None:
            labor = row[1]
        elif "tax" in key and tax is None:
            tax = row[1]
    return labor, tax


def build_workbook_catalog(
    sheets: Mapping[str, Sequence[Sequence[Any]]],
    settings: Optional[EstimatorSettings] = None,
) -> Catalog:
    settings = settings or EstimatorSettings()
    if not sheets:
        raise CatalogError("El libro no tiene hojas")

    grouper = _SectionGrouper()
    labor_raw: Any = None
    tax_raw: Any = None
    structured = 0

    for sheet_name, grid in sheets.items():
        section_name = str(sheet_name).strip()
        if normalize(section_name) in SETTINGS_SHEETS:
            labor_raw, tax_raw = _read_settings_sheet(grid)
            continue
        if not section_name or not grid:
            continue

        headers, body = split_header(grid)
        product_col = pick_column(headers, PRODUCT_CANDIDATES)
        if product_col == NOT_FOUND:
            logger.warning("Hoja '%s' sin columna de producto, se omite", section_name)
            continue
        cost_col = pick_column(headers, COST_CANDIDATES)
        hours_col = pick_column(headers, LABOR_HOURS_CANDIDATES)
        link_col = pick_column(headers, LINK_CANDIDATES)
        size_col = pick_column(headers, SIZE_CANDIDATES)
        tag_cols = denylist_tag_columns(
            headers, exclude=(product_col, cost_col, hours_col, link_col, size_col)
        )

        structured += 1
        grouper.ensure(section_name)
        grouper.note_tags(key for _, key in tag_cols)
        for row_index, row in enumerate(body):
            product = cell_text(_cell(row, product_col))
            if not product:
                continue
            grouper.add(
                section_name,
                Item(
                    id=make_id(section_name, row_index),
                    description=product,
                    link=cell_text(_cell(row, link_col)),
                    item_size=cell_text(_cell(row, size_col)),
                    price_per_unit=_non_negative(_cell(row, cost_col)),
                    estimated_hours=_non_negative(_cell(row, hours_col)),
                    compatible=tuple(dict.fromkeys(key for idx, key in tag_cols if yes_value(_cell(row, idx)))),
                ),
            )

    if not structured:
        raise CatalogError("Ninguna hoja del libro tiene columna de producto")

    labor_rate, tax_rate = _rates(labor_raw, tax_raw, settings)
    return Catalog(
        sections=grouper.sections(),
        van_types=grouper.tags,
        default_labor_rate=labor_rate,
        default_tax_rate=tax_rate,
    )


# ---------------------------- JSON DE RESPALDO ---------------------------- #


def _compatible_tags(raw: Any) -> Tuple[str, ...]:
    if isinstance(raw, Mapping):
        tags = [normalize(k) for k, v in raw.items() if yes_value(v)]
    elif isinstance(raw, str):
        tags = [normalize(t) for t in raw.split(",")]
    elif isinstance(raw, (list, tuple)):
        tags = [normalize(t) for t in raw]
    else:
        tags = []
    out: List[str] = []
    for tag in tags:
        if tag and tag not in out:
            out.append(tag)
    return tuple(out)


def catalog_from_dict(data: Any, settings: Optional[EstimatorSettings] = None) -> Catalog:
    settings = settings or EstimatorSettings()
    if not isinstance(data, Mapping) or not isinstance(data.get("sections"), list):
        raise CatalogError("El JSON de catálogo no tiene la lista 'sections'")

    grouper = _SectionGrouper()
    # posición corrida por nombre: secciones repetidas se fusionan
    positions: Dict[str, int] = {}
    for sec in data["sections"]:
        if not isinstance(sec, Mapping):
            continue
        section_name = cell_text(sec.get("name"))
        raw_items = sec.get("items") or []
        if not section_name or not isinstance(raw_items, list):
            continue
        grouper.ensure(section_name)
        for raw in raw_items:
            pos = positions.get(section_name, 0)
            positions[section_name] = pos + 1
            if not isinstance(raw, Mapping):
                continue
            product = cell_text(raw.get("product") or raw.get("description"))
            if not product:
                continue
            grouper.add(
                section_name,
                Item(
                    id=make_id(section_name, pos),
                    description=product,
                    link=cell_text(raw.get("link")),
                    item_size=cell_text(raw.get("itemSize")),
                    price_per_unit=_non_negative(raw.get("materialCost", raw.get("pricePerUnit"))),
                    estimated_hours=_non_negative(raw.get("laborHours", raw.get("estimatedHours"))),
                    compatible=_compatible_tags(raw.get("compatible")),
                ),
            )

    sections = grouper.sections()
    if not sections:
        raise CatalogError("El JSON de catálogo no tiene secciones válidas")

    labor_rate, tax_rate = _rates(data.get("defaultLaborRate"), data.get("taxRate"), settings)
    return Catalog(
        sections=sections,
        van_types=grouper.tags,
        default_labor_rate=labor_rate,
        default_tax_rate=tax_rate,
    )
