from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

import requests

from .catalog import CatalogError, build_catalog_from_grid, build_workbook_catalog, catalog_from_dict
from .engine import EstimateSession
from .models import Catalog
from .settings import EstimatorSettings, load_settings
from .tabular import parse_csv, read_workbook

logger = logging.getLogger(__name__)

Location = Union[str, Path]

ZIP_SIGNATURE = b"PK\x03\x04"


class SourceError(ValueError):
    """No se pudo obtener o decodificar el origen del catálogo."""


# ---------------------------- RESULTADOS ---------------------------- #


@dataclass(frozen=True)
class LoadSuccess:
    catalog: Catalog
    source: str
    used_fallback: bool = False

    ok = True

    @property
    def status_message(self) -> str:
        if self.used_fallback:
            return f"Primary source unavailable; loaded fallback data from {self.source}."
        return f"Loaded data from {self.source}."


@dataclass(frozen=True)
class LoadFailure:
    reason: str
    attempts: Tuple[str, ...] = field(default_factory=tuple)

    ok = False

    @property
    def status_message(self) -> str:
        return "Could not load catalog data. Check link access and network connectivity."


LoadResult = Union[LoadSuccess, LoadFailure]


# ---------------------------- LECTURA ---------------------------- #


def _is_url(location: Location) -> bool:
    return isinstance(location, str) and location.lower().startswith(("http://", "https://"))


def fetch_source(location: Location, timeout: Optional[float] = None) -> bytes:
    if _is_url(location):
        try:
            response = requests.get(str(location), timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise SourceError(f"Falló la descarga de {location}: {exc}") from exc
        return response.content

    path = Path(location)
    try:
        return path.read_bytes()
    except OSError as exc:
        raise SourceError(f"No se pudo leer {path}: {exc}") from exc


def _decode_text(payload: bytes) -> str:
    try:
        return payload.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise SourceError("El origen no es texto UTF-8") from exc


def decode_catalog(payload: bytes, settings: Optional[EstimatorSettings] = None) -> Catalog:
    """
    Detecta el formato por contenido:
      - firma zip -> libro .xlsx (una hoja por sección)
      - '{' inicial -> JSON normalizado
      - cualquier otro -> texto CSV
    """
    settings = settings or EstimatorSettings()
    if not payload:
        raise SourceError("El origen devolvió un contenido vacío")

    if payload.startswith(ZIP_SIGNATURE):
        try:
            sheets = read_workbook(payload)
        except Exception as exc:
            raise SourceError(f"No se pudo leer el libro: {exc}") from exc
        return build_workbook_catalog(sheets, settings)

    text = _decode_text(payload)
    if text.lstrip().startswith("{"):
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise SourceError(f"JSON inválido: {exc}") from exc
        return catalog_from_dict(data, settings)

    rows = parse_csv(text)
    if not rows:
        raise SourceError("El origen CSV no devolvió filas")
    return build_catalog_from_grid(rows, settings)


def _attempt(location: Location, settings: EstimatorSettings) -> Catalog:
    payload = fetch_source(location, timeout=settings.request_timeout)
    return decode_catalog(payload, settings)


def load_catalog(
    primary: Location,
    fallback: Optional[Location] = None,
    settings: Optional[EstimatorSettings] = None,
) -> LoadResult:
    """
    Dos intentos como máximo: origen principal y, si falla, el respaldo.
    El primer resultado definitivo es el de toda la sesión.
    """
    settings = settings or EstimatorSettings()
    attempts: List[str] = []

    try:
        return LoadSuccess(catalog=_attempt(primary, settings), source=str(primary))
    except (SourceError, CatalogError) as exc:
        attempts.append(f"{primary}: {exc}")
        logger.warning("Origen principal no disponible (%s)", exc)

    if fallback is None:
        return LoadFailure(reason=attempts[-1], attempts=tuple(attempts))

    try:
        catalog = _attempt(fallback, settings)
    except (SourceError, CatalogError) as exc:
        attempts.append(f"{fallback}: {exc}")
        logger.error("Respaldo tampoco disponible (%s)", exc)
        return LoadFailure(reason=attempts[-1], attempts=tuple(attempts))

    logger.info("Catálogo cargado desde el respaldo %s", fallback)
    return LoadSuccess(catalog=catalog, source=str(fallback), used_fallback=True)


def start_session(settings: Optional[EstimatorSettings] = None) -> Tuple[LoadResult, Optional[EstimateSession]]:
    settings = settings or load_settings()
    result = load_catalog(settings.source_url, settings.fallback_path, settings)
    if isinstance(result, LoadFailure):
        return result, None
    return result, EstimateSession(result.catalog, settings)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    res, session = start_session()
    print(res.status_message)
    if session is not None:
        cat = session.catalog
        print(f"Secciones: {len(cat.sections)} | Ítems: {cat.item_count()} | Tipos: {', '.join(cat.van_types)}")
        for sec in cat.sections:
            print(f"  {sec.name}: {len(sec.items)}")
