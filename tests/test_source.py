import json

import requests
from openpyxl import Workbook

from logic.van_estimator import source
from logic.van_estimator.settings import EstimatorSettings, load_settings
from logic.van_estimator.source import (
    LoadFailure,
    LoadSuccess,
    decode_catalog,
    load_catalog,
    start_session,
)

CSV_TEXT = (
    "\ufeffType,Item Description,Price Per Unit,Est.Hrs,Promaster,Sprinter\r\n"
    "Flooring,Plywood,100,2,x,\r\n"
    "Electrical,Battery,900,3,x,x\r\n"
)

FALLBACK = {
    "sections": [{"name": "Flooring", "items": [{"product": "Backup plywood", "materialCost": 90, "laborHours": 2, "compatible": ["promaster"]}]}],
    "defaultLaborRate": 100,
    "taxRate": 7,
}


class _FakeResponse:
    def __init__(self, content: bytes, status: int = 200):
        self.content = content
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


def _write_fallback(tmp_path):
    path = tmp_path / "fallback.json"
    path.write_text(json.dumps(FALLBACK), encoding="utf-8")
    return path


def test_decode_csv_con_bom():
    cat = decode_catalog(CSV_TEXT.encode("utf-8"))
    assert cat.section_names() == ("Flooring", "Electrical")
    assert cat.van_types == ("promaster", "sprinter")


def test_decode_libro(tmp_path):
    wb = Workbook()
    ws = wb.active
    ws.title = "Flooring"
    ws.append(["Product", "Material Cost", "Labor Hours", "Promaster", "Transit"])
    ws.append(["Plywood", 420, 6, "x", None])
    path = tmp_path / "catalog.xlsx"
    wb.save(path)

    cat = decode_catalog(path.read_bytes())
    assert cat.section_names() == ("Flooring",)
    item = cat.section("Flooring").items[0]
    assert item.price_per_unit == 420
    assert item.compatible == ("promaster",)
    assert cat.van_types == ("promaster", "transit")


def test_url_principal_ok(monkeypatch):
    calls = []

    def fake_get(url, timeout=None):
        calls.append(url)
        return _FakeResponse(CSV_TEXT.encode("utf-8"))

    monkeypatch.setattr(source.requests, "get", fake_get)
    res = load_catalog("https://example.test/catalog.csv", fallback=None)
    assert isinstance(res, LoadSuccess)
    assert res.ok and not res.used_fallback
    assert res.catalog.item_count() == 2
    assert calls == ["https://example.test/catalog.csv"]
    assert "example.test" in res.status_message


def test_http_error_usa_respaldo(monkeypatch, tmp_path):
    calls = []

    def fake_get(url, timeout=None):
        calls.append(url)
        return _FakeResponse(b"", status=503)

    monkeypatch.setattr(source.requests, "get", fake_get)
    res = load_catalog("https://example.test/catalog.csv", fallback=_write_fallback(tmp_path))
    assert isinstance(res, LoadSuccess)
    assert res.used_fallback
    assert res.catalog.section("Flooring").items[0].description == "Backup plywood"
    assert res.catalog.default_labor_rate == 100
    # sin reintentos
    assert len(calls) == 1


def test_forma_invalida_usa_respaldo(monkeypatch, tmp_path):
    monkeypatch.setattr(source.requests, "get", lambda url, timeout=None: _FakeResponse(b"Foo,Bar\n1,2\n"))
    res = load_catalog("https://example.test/catalog.csv", fallback=_write_fallback(tmp_path))
    assert isinstance(res, LoadSuccess)
    assert res.used_fallback


def test_ambos_fallan(monkeypatch, tmp_path):
    def boom(url, timeout=None):
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(source.requests, "get", boom)
    res = load_catalog("https://example.test/catalog.csv", fallback=tmp_path / "missing.json")
    assert isinstance(res, LoadFailure)
    assert not res.ok
    assert len(res.attempts) == 2
    assert "missing.json" in res.reason
    assert "Could not load" in res.status_message


def test_sin_respaldo_falla(tmp_path):
    empty = tmp_path / "empty.csv"
    empty.write_text("", encoding="utf-8")
    res = load_catalog(empty)
    assert isinstance(res, LoadFailure)
    assert len(res.attempts) == 1


def test_start_session_con_settings(tmp_path):
    primary = tmp_path / "catalog.csv"
    primary.write_text(CSV_TEXT, encoding="utf-8")
    settings = EstimatorSettings(source_url=str(primary), fallback_path=None, default_markup=1.0)
    res, session = start_session(settings)
    assert res.ok
    session.set_van_type("promaster")
    session.add_selection("Flooring", "flooring-0")
    assert session.section_totals("Flooring").material_cost == 100


def test_start_session_falla_sin_sesion(tmp_path):
    settings = EstimatorSettings(source_url=str(tmp_path / "nope.csv"), fallback_path=None)
    res, session = start_session(settings)
    assert isinstance(res, LoadFailure)
    assert session is None


def test_load_settings(tmp_path):
    cfg = tmp_path / "settings.json"
    cfg.write_text(json.dumps({
        "source_url": "https://example.test/c.csv",
        "fallback_path": "backup.json",
        "default_labor_rate": "95",
        "default_markup": -1,
        "known_van_types": ["Promaster", "Sprinter"],
        "request_timeout": 10,
    }), encoding="utf-8")
    s = load_settings(cfg, base_dir=tmp_path)
    assert s.source_url == "https://example.test/c.csv"
    assert s.fallback_path == tmp_path / "data" / "van_estimator" / "backup.json"
    assert s.default_labor_rate == 95
    assert s.default_tax_rate == 8.25
    assert s.default_markup == 1.2
    assert s.known_van_types == ("promaster", "sprinter")
    assert s.request_timeout == 10

    defaults = load_settings(tmp_path / "missing.json", base_dir=tmp_path)
    assert defaults.default_labor_rate == 110
    assert defaults.request_timeout is None


def test_respaldo_del_repo_es_valido():
    settings = load_settings()
    res = load_catalog(settings.fallback_path)
    assert isinstance(res, LoadSuccess)
    assert res.catalog.item_count() > 0
    assert "promaster" in res.catalog.van_types


def test_json_mal_formado_usa_respaldo(tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"sections": [{"name": "Flooring", "items": 5}]}), encoding="utf-8")
    res = load_catalog(bad)
    assert isinstance(res, LoadFailure)

    res = load_catalog(bad, fallback=_write_fallback(tmp_path))
    assert isinstance(res, LoadSuccess)
    assert res.used_fallback


def test_json_sin_secciones_usa_respaldo(tmp_path):
    empty = tmp_path / "empty.json"
    empty.write_text(json.dumps({"sections": []}), encoding="utf-8")
    res = load_catalog(empty, fallback=_write_fallback(tmp_path))
    assert isinstance(res, LoadSuccess)
    assert res.used_fallback
    assert res.catalog.item_count() == 1
