from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .columns import section_key
from .settings import DEFAULT_MARKUP


# ---------------------------- CATÁLOGO ---------------------------- #


@dataclass(frozen=True)
class Item:
    id: str
    description: str
    link: str = ""
    item_size: str = ""
    price_per_unit: float = 0.0
    estimated_hours: float = 0.0
    compatible: Tuple[str, ...] = ()

    def is_compatible(self, van_type: str) -> bool:
        return bool(van_type) and van_type in self.compatible


@dataclass(frozen=True)
class Section:
    name: str
    items: Tuple[Item, ...] = ()

    @property
    def key(self) -> str:
        return section_key(self.name)

    def item(self, item_id: str) -> Optional[Item]:
        for it in self.items:
            if it.id == item_id:
                return it
        return None


@dataclass(frozen=True)
class Catalog:
    sections: Tuple[Section, ...]
    van_types: Tuple[str, ...]
    default_labor_rate: float
    default_tax_rate: float

    def section(self, name: str) -> Section:
        for sec in self.sections:
            if sec.name == name:
                return sec
        raise KeyError(f"Sección desconocida '{name}' en el catálogo")

    def section_names(self) -> Tuple[str, ...]:
        return tuple(sec.name for sec in self.sections)

    def item_count(self) -> int:
        return sum(len(sec.items) for sec in self.sections)


# ---------------------------- SESIÓN ---------------------------- #


@dataclass
class Selection:
    item_id: str
    count: float = 1.0
    markup: float = DEFAULT_MARKUP


@dataclass
class EstimateParams:
    year: str = ""
    make: str = ""
    model: str = ""
    van_type: str = ""
    labor_rate: float = 0.0
    tax_rate: float = 0.0


@dataclass(frozen=True)
class SelectedLine:
    """Selección resuelta contra el catálogo, con los importes de la fila."""
    item: Item
    count: float
    markup: float
    labor_rate: float

    @property
    def hours(self) -> float:
        return self.item.estimated_hours * self.count

    @property
    def material_cost(self) -> float:
        return self.item.price_per_unit * self.count * self.markup

    @property
    def labor_cost(self) -> float:
        return self.hours * self.labor_rate

    @property
    def total(self) -> float:
        return self.material_cost + self.labor_cost


@dataclass(frozen=True)
class SectionTotals:
    labor_hours: float = 0.0
    material_cost: float = 0.0
    labor_cost: float = 0.0
    total: float = 0.0

    def as_dict(self) -> Dict[str, float]:
        return {
            "labor_hours": self.labor_hours,
            "material_cost": self.material_cost,
            "labor_cost": self.labor_cost,
            "total": self.total,
        }


@dataclass(frozen=True)
class OverallTotals:
    material: float = 0.0
    labor: float = 0.0
    pre_tax: float = 0.0
    tax: float = 0.0
    total: float = 0.0

    def as_dict(self) -> Dict[str, float]:
        return {
            "material": self.material,
            "labor": self.labor,
            "pre_tax": self.pre_tax,
            "tax": self.tax,
            "total": self.total,
        }
