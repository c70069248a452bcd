from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

DATA_DIR = Path("data/van_estimator")
SETTINGS_FILE = "settings.json"

DEFAULT_SOURCE_URL = (
    "https://docs.google.com/spreadsheets/d/e/2PACX-1vRMpK2oJSiJb4_JUHEXu1ThT4U33ByWK46jZNR8isA5KSLDY3BkM_p1UTf_LF6BKBfQbHrTVPNCg31q/pub?output=csv"
)
DEFAULT_LABOR_RATE = 110.0
DEFAULT_TAX_RATE = 8.25
DEFAULT_MARKUP = 1.2
KNOWN_VAN_TYPES: Tuple[str, ...] = ("promaster", "sprinter", "transit", "other")


def get_base_dir() -> Path:
    return Path(__file__).resolve().parents[2]


def _safe_read_json(path: Path) -> Dict[str, Any]:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except Exception:
        return {}


def _safe_number(value: Any, default: float) -> float:
    try:
        return float(value)
    except Exception:
        return default


@dataclass(frozen=True)
class EstimatorSettings:
    """
    Parámetros de arranque del estimador.

    ``fallback_path`` apunta al JSON ya normalizado que se usa cuando la
    fuente principal no responde.
    """
    source_url: str = DEFAULT_SOURCE_URL
    fallback_path: Optional[Path] = None
    default_labor_rate: float = DEFAULT_LABOR_RATE
    default_tax_rate: float = DEFAULT_TAX_RATE
    default_markup: float = DEFAULT_MARKUP
    known_van_types: Tuple[str, ...] = field(default=KNOWN_VAN_TYPES)
    request_timeout: Optional[float] = None


def load_settings(path: Path | str | None = None, base_dir: Path | None = None) -> EstimatorSettings:
    base = base_dir or get_base_dir()
    cfg_path = Path(path) if path else base / DATA_DIR / SETTINGS_FILE
    data = _safe_read_json(cfg_path)
    if not isinstance(data, dict):
        data = {}
    if not data:
        logger.debug("Sin configuración en %s, se usan valores por defecto", cfg_path)

    fallback_raw = data.get("fallback_path", "catalog_fallback.json")
    fallback = Path(fallback_raw) if fallback_raw else None
    if fallback is not None and not fallback.is_absolute():
        fallback = base / DATA_DIR / fallback

    tipos = data.get("known_van_types")
    if isinstance(tipos, list) and tipos:
        known = tuple(str(t).strip().lower() for t in tipos if str(t).strip())
    else:
        known = KNOWN_VAN_TYPES

    timeout_s = _safe_number(data.get("request_timeout"), 0.0)
    markup = _safe_number(data.get("default_markup", DEFAULT_MARKUP), DEFAULT_MARKUP)

    return EstimatorSettings(
        source_url=str(data.get("source_url") or DEFAULT_SOURCE_URL),
        fallback_path=fallback,
        default_labor_rate=_safe_number(data.get("default_labor_rate", DEFAULT_LABOR_RATE), DEFAULT_LABOR_RATE),
        default_tax_rate=_safe_number(data.get("default_tax_rate", DEFAULT_TAX_RATE), DEFAULT_TAX_RATE),
        default_markup=markup if markup > 0 else DEFAULT_MARKUP,
        known_van_types=known,
        request_timeout=timeout_s if timeout_s > 0 else None,
    )
