"""
Estimador de conversiones de van.

Normaliza un catálogo tabular (CSV, libro de Excel o JSON de respaldo) y
calcula material, mano de obra e impuestos sobre las selecciones de la
sesión. La vista es externa: solo consume el view-model de
:class:`EstimateSession`.
"""

from .catalog import CatalogError, build_catalog, build_workbook_catalog, catalog_from_dict
from .coercion import as_number, yes_value
from .columns import make_id, pick_column, section_key
from .engine import EstimateSession
from .models import Catalog, Item, OverallTotals, Section, SectionTotals, Selection
from .settings import EstimatorSettings, load_settings
from .source import LoadFailure, LoadSuccess, SourceError, decode_catalog, load_catalog, start_session
from .tabular import parse_csv, read_workbook

__all__ = [
    "CatalogError",
    "build_catalog",
    "build_workbook_catalog",
    "catalog_from_dict",
    "as_number",
    "yes_value",
    "make_id",
    "pick_column",
    "section_key",
    "EstimateSession",
    "Catalog",
    "Item",
    "OverallTotals",
    "Section",
    "SectionTotals",
    "Selection",
    "EstimatorSettings",
    "load_settings",
    "LoadFailure",
    "LoadSuccess",
    "SourceError",
    "decode_catalog",
    "load_catalog",
    "start_session",
    "parse_csv",
    "read_workbook",
]
