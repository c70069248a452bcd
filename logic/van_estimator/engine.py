"""
Motor de selección y totales.

:class:`EstimateSession` es el contexto explícito de una sesión: catálogo,
selecciones por sección y parámetros del presupuesto. No hay estado de
módulo; cada prueba o cada vista crea su propia sesión. Todos los totales
se recalculan en cada consulta a partir del estado actual.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from .coercion import as_number, positive_or
from .columns import label_for_van_type, normalize
from .formatting import format_hours, format_money, format_percent, vehicle_title
from .models import (
    Catalog,
    EstimateParams,
    Item,
    OverallTotals,
    Section,
    SectionTotals,
    SelectedLine,
    Selection,
)
from .settings import EstimatorSettings

logger = logging.getLogger(__name__)

SectionRef = Union[str, Section]

SELECTION_FIELDS = ("count", "markup")


class EstimateSession:
    def __init__(self, catalog: Catalog, settings: Optional[EstimatorSettings] = None):
        self.catalog = catalog
        self.settings = settings or EstimatorSettings()
        self.default_markup = self.settings.default_markup
        self.estimate = EstimateParams(
            labor_rate=catalog.default_labor_rate,
            tax_rate=catalog.default_tax_rate,
        )
        self.selections: Dict[str, List[Selection]] = {}
        self.collapsed: Dict[str, bool] = {}
        self.reset_selections()

    # ------------------------------------------------------------------ #
    # helpers
    # ------------------------------------------------------------------ #
    def _section(self, section: SectionRef) -> Section:
        if isinstance(section, Section):
            return section
        return self.catalog.section(section)

    def reset_selections(self) -> None:
        for sec in self.catalog.sections:
            self.selections[sec.name] = []
            self.collapsed[sec.name] = False

    def selected_lines(self, section: SectionRef) -> List[SelectedLine]:
        """Selecciones resueltas; las que apuntan a un ítem inexistente se omiten."""
        sec = self._section(section)
        lines: List[SelectedLine] = []
        for entry in self.selections.get(sec.name, []):
            item = sec.item(entry.item_id)
            if item is None:
                continue
            lines.append(
                SelectedLine(
                    item=item,
                    count=positive_or(entry.count, 1.0),
                    markup=positive_or(entry.markup, self.default_markup),
                    labor_rate=self.estimate.labor_rate,
                )
            )
        return lines

    # ------------------------------------------------------------------ #
    # intenciones del usuario
    # ------------------------------------------------------------------ #
    def add_selection(self, section: SectionRef, item_id: Any) -> SectionTotals:
        sec = self._section(section)
        item_id = str(item_id or "").strip()
        current = self.selections.setdefault(sec.name, [])
        if not item_id or any(e.item_id == item_id for e in current):
            return self.section_totals(sec)
        if sec.item(item_id) is None:
            logger.debug("Ítem '%s' no existe en la sección '%s'", item_id, sec.name)
            return self.section_totals(sec)
        current.append(Selection(item_id=item_id, count=1.0, markup=self.default_markup))
        return self.section_totals(sec)

    def remove_selection(self, section: SectionRef, item_id: Any) -> SectionTotals:
        sec = self._section(section)
        item_id = str(item_id or "").strip()
        self.selections[sec.name] = [e for e in self.selections.get(sec.name, []) if e.item_id != item_id]
        return self.section_totals(sec)

    def update_selection_field(self, section: SectionRef, item_id: Any, field: str, raw_value: Any) -> SectionTotals:
        sec = self._section(section)
        if field not in SELECTION_FIELDS:
            return self.section_totals(sec)
        item_id = str(item_id or "").strip()
        for entry in self.selections.get(sec.name, []):
            if entry.item_id != item_id:
                continue
            if field == "count":
                entry.count = positive_or(raw_value, 1.0)
            else:
                entry.markup = positive_or(raw_value, self.default_markup)
        return self.section_totals(sec)

    def set_van_type(self, tag: Any) -> None:
        """
        Cambia el tipo de van y descarta las selecciones incompatibles.
        El descarte no se revierte al volver al tipo anterior.
        """
        self.estimate.van_type = normalize(tag)
        for sec in self.catalog.sections:
            kept = [line for line in self.selected_lines(sec) if line.item.is_compatible(self.estimate.van_type)]
            before = len(self.selections.get(sec.name, []))
            self.selections[sec.name] = [
                Selection(item_id=line.item.id, count=line.count, markup=line.markup) for line in kept
            ]
            if before != len(kept):
                logger.debug("Sección '%s': %d selecciones descartadas", sec.name, before - len(kept))

    def set_labor_rate(self, raw_value: Any) -> None:
        self.estimate.labor_rate = max(0.0, as_number(raw_value))

    def set_tax_rate(self, raw_value: Any) -> None:
        self.estimate.tax_rate = max(0.0, as_number(raw_value))

    def set_vehicle(self, year: Any = None, make: Any = None, model: Any = None) -> None:
        if year is not None:
            self.estimate.year = str(year)
        if make is not None:
            self.estimate.make = str(make)
        if model is not None:
            self.estimate.model = str(model)

    def set_collapsed(self, section: SectionRef, collapsed: bool) -> None:
        self.collapsed[self._section(section).name] = bool(collapsed)

    def toggle_collapsed(self, section: SectionRef) -> bool:
        name = self._section(section).name
        self.collapsed[name] = not self.collapsed.get(name, False)
        return self.collapsed[name]

    # ------------------------------------------------------------------ #
    # consultas
    # ------------------------------------------------------------------ #
    def section_totals(self, section: SectionRef) -> SectionTotals:
        lines = self.selected_lines(section)
        labor_hours = sum(line.hours for line in lines)
        material_cost = sum(line.material_cost for line in lines)
        labor_cost = labor_hours * self.estimate.labor_rate
        return SectionTotals(
            labor_hours=labor_hours,
            material_cost=material_cost,
            labor_cost=labor_cost,
            total=material_cost + labor_cost,
        )

    def overall_totals(self) -> OverallTotals:
        totals = [self.section_totals(sec) for sec in self.catalog.sections]
        material = sum(t.material_cost for t in totals)
        labor = sum(t.labor_cost for t in totals)
        pre_tax = material + labor
        tax = pre_tax * (self.estimate.tax_rate / 100.0)
        return OverallTotals(material=material, labor=labor, pre_tax=pre_tax, tax=tax, total=pre_tax + tax)

    def compatible_choices(self, section: SectionRef) -> List[Item]:
        sec = self._section(section)
        van_type = self.estimate.van_type
        if not van_type:
            return []
        chosen = {e.item_id for e in self.selections.get(sec.name, [])}
        return [it for it in sec.items if it.id not in chosen and it.is_compatible(van_type)]

    # ------------------------------------------------------------------ #
    # view-model
    # ------------------------------------------------------------------ #
    def section_view(self, section: SectionRef) -> Dict[str, Any]:
        sec = self._section(section)
        totals = self.section_totals(sec)
        rows = []
        for line in self.selected_lines(sec):
            rows.append({
                "item_id": line.item.id,
                "description": line.item.description,
                "link": line.item.link,
                "item_size": line.item.item_size,
                "price_per_unit": line.item.price_per_unit,
                "count": line.count,
                "markup": line.markup,
                "material_cost": line.material_cost,
                "hours": line.hours,
                "labor_cost": line.labor_cost,
                "total": line.total,
                "display": {
                    "price_per_unit": format_money(line.item.price_per_unit),
                    "material_cost": format_money(line.material_cost),
                    "hours": format_hours(line.hours),
                    "labor_cost": format_money(line.labor_cost),
                    "total": format_money(line.total),
                },
            })
        choices = [
            {
                "item_id": it.id,
                "label": f"{it.description} ({format_money(it.price_per_unit)}, {format_hours(it.estimated_hours)} hrs)",
            }
            for it in self.compatible_choices(sec)
        ]
        return {
            "name": sec.name,
            "key": sec.key,
            "collapsed": self.collapsed.get(sec.name, False),
            "rows": rows,
            "choices": choices,
            "totals": totals.as_dict(),
            "display": {
                "labor_hours": format_hours(totals.labor_hours),
                "material_cost": format_money(totals.material_cost),
                "labor_cost": format_money(totals.labor_cost),
                "total": format_money(totals.total),
            },
        }

    def estimate_meta(self) -> Dict[str, str]:
        est = self.estimate
        return {
            "van": vehicle_title(est.year, est.make, est.model) or "Not specified",
            "compatibility_profile": est.van_type or "Not selected",
            "labor_rate": f"{format_money(est.labor_rate)} / hr",
            "tax_rate": format_percent(est.tax_rate),
        }

    def van_type_options(self) -> List[Dict[str, str]]:
        return [{"value": tag, "label": label_for_van_type(tag)} for tag in self.catalog.van_types]

    def view_model(self) -> Dict[str, Any]:
        totals = self.overall_totals()
        return {
            "meta": self.estimate_meta(),
            "van_types": self.van_type_options(),
            "sections": [self.section_view(sec) for sec in self.catalog.sections],
            "totals": totals.as_dict(),
            "display": {key: format_money(val) for key, val in totals.as_dict().items()},
        }
