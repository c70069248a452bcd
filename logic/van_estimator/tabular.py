# logic/van_estimator/tabular.py
from __future__ import annotations

import io
from pathlib import Path
from typing import IO, Any, Dict, List, Sequence, Tuple, Union

import pandas as pd

__all__ = [
    "parse_csv",
    "read_workbook",
    "split_header",
    "cell_text",
]

Grid = List[List[Any]]
WorkbookSource = Union[bytes, str, Path, IO[bytes]]


def parse_csv(text: str, delimiter: str = ",") -> List[List[str]]:
    """
    Parte texto delimitado en filas de celdas.

    - Comillas dobles agrupan celdas con delimitador o saltos de línea;
      ``""`` dentro de comillas es una comilla literal.
    - ``\\n``, ``\\r\\n`` y ``\\r`` cierran fila.
    - La última fila sin salto final también se emite.
    - Nunca lanza: una comilla sin cerrar absorbe el resto del texto.
    """
    rows: List[List[str]] = []
    row: List[str] = []
    cell: List[str] = []
    in_quotes = False
    i = 0
    n = len(text or "")

    while i < n:
        ch = text[i]
        nxt = text[i + 1] if i + 1 < n else ""

        if ch == '"':
            if in_quotes and nxt == '"':
                cell.append('"')
                i += 2
                continue
            in_quotes = not in_quotes
            i += 1
            continue

        if not in_quotes and ch == delimiter:
            row.append("".join(cell))
            cell = []
            i += 1
            continue

        if not in_quotes and ch in ("\n", "\r"):
            if ch == "\r" and nxt == "\n":
                i += 1
            row.append("".join(cell))
            rows.append(row)
            row = []
            cell = []
            i += 1
            continue

        cell.append(ch)
        i += 1

    if cell or row:
        row.append("".join(cell))
        rows.append(row)

    return rows


def cell_text(value: Any) -> str:
    """Celda como texto limpio ('' para None/NaN)."""
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value).strip()


def _is_blank_row(row: Sequence[Any]) -> bool:
    return all(cell_text(v) == "" for v in row)


def read_workbook(source: WorkbookSource) -> Dict[str, Grid]:
    """
    Lee todas las hojas de un .xlsx y devuelve {nombre_hoja: filas}.
    Las celdas vacías quedan como '' y se descartan las filas vacías del final.
    """
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)
    frames = pd.read_excel(source, sheet_name=None, header=None, dtype=object, engine="openpyxl")

    sheets: Dict[str, Grid] = {}
    for name, df in frames.items():
        grid: Grid = []
        for values in df.itertuples(index=False, name=None):
            grid.append(["" if cell_text(v) == "" else v for v in values])
        while grid and _is_blank_row(grid[-1]):
            grid.pop()
        sheets[str(name)] = grid
    return sheets


def split_header(grid: Sequence[Sequence[Any]]) -> Tuple[List[str], List[List[Any]]]:
    if not grid:
        return [], []
    header, *body = grid
    return [cell_text(h) for h in header], [list(r) for r in body]
