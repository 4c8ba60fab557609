"""
Parser CSV tolerante para el export público de Google Sheets.

Escáner con manejo de comillas:
- un campo puede ir entre comillas dobles
- dentro de un campo entrecomillado, "" representa una comilla literal
- coma fuera de comillas separa campos, salto de línea fuera de comillas termina la fila
- '\\r' se descarta siempre
- un campo/fila sin terminar al final del texto igual se emite
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from .types import RawTable


def split_csv_rows(text: Optional[str]) -> list[list[str]]:
    """Divide el texto en filas de campos (sin interpretar headers)."""
    rows: list[list[str]] = []
    row: list[str] = []
    buf: list[str] = []
    in_quotes = False

    text = str(text or "")
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == '"':
            if in_quotes and i + 1 < n and text[i + 1] == '"':
                buf.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif ch == "," and not in_quotes:
            row.append("".join(buf))
            buf = []
        elif ch == "\n" and not in_quotes:
            row.append("".join(buf))
            rows.append(row)
            row = []
            buf = []
        elif ch == "\r":
            pass
        else:
            buf.append(ch)
        i += 1

    if buf or row:
        row.append("".join(buf))
        rows.append(row)

    return rows


def parse_csv(text: Optional[str]) -> RawTable:
    """
    Convierte texto CSV en RawTable. La primera fila son los headers (trim).

    Texto vacío -> RawTable vacía (no es error: el caller decide).
    """
    rows = split_csv_rows(text)
    if not rows:
        return RawTable(headers=[], rows=[])

    headers = [h.strip() for h in rows[0]]
    return RawTable(headers=headers, rows=rows[1:])


def values_to_raw_table(values: Iterable[Iterable[Any]]) -> RawTable:
    """
    Convierte la grilla 'values' de la API de Sheets en RawTable.
    Las celdas se pasan a string; None -> "".
    """
    grid = [["" if cell is None else str(cell) for cell in row] for row in (values or [])]
    if not grid:
        return RawTable(headers=[], rows=[])
    return RawTable(headers=[h.strip() for h in grid[0]], rows=grid[1:])
