"""
Normalizador de filas de la hoja a StudentRecord.

Todas las coerciones son totales: nunca lanzan excepción, ante un valor
inutilizable devuelven "" o None según el tipo del campo.
"""

from __future__ import annotations

import math
import re
from datetime import datetime
from typing import Any, Optional, Sequence

from dateutil import parser as dtparser
from loguru import logger

from .header_mapping import CLASS_SOURCE_FIELD, build_header_index
from .types import CANONICAL_FIELDS, CanonicalHeaderIndex, Number, RawTable, StudentRecord

ROMAN_YEARS = {"I": 1, "II": 2, "III": 3, "IV": 4, "V": 5, "VI": 6}
MIN_YEAR, MAX_YEAR = 1, 6

_DIGITS = re.compile(r"^\d+$")
_LINE_BREAKS = re.compile(r"[\r\n]+")
_WHITESPACE = re.compile(r"\s+")


def to_str(value: Any) -> str:
    """String recortado; "" si no hay valor."""
    if value is None:
        return ""
    return str(value).strip()


def to_number(value: Any) -> Optional[Number]:
    """
    Número o None (vacío / no numérico / no finito -> None).
    Conserva int cuando el texto es entero.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None

    text = str(value).strip()
    # int()/float() aceptan "1_000"; en la hoja eso no es un número.
    if not text or "_" in text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def to_date(value: Any) -> Optional[str]:
    """
    Fecha ISO (YYYY-MM-DD) o None. Parseo best-effort con dateutil.
    """
    text = to_str(value)
    if not text:
        return None
    # Números sueltos ("5", "38000") no son fechas confiables.
    if _DIGITS.match(text) and len(text) != 8:
        return None
    try:
        parsed = dtparser.parse(text, default=datetime(2000, 1, 1))
    except (ValueError, OverflowError):
        return None
    return parsed.date().isoformat()


def normalize_year(value: Any) -> Optional[int]:
    """
    Año de cursada como entero 1..6.

    Acepta dígitos ("3") o romanos ("III"). Cualquier otro valor -> None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value) or int(value) != value:
            return None
        year = int(value)
    else:
        text = str(value).strip().upper()
        if not text:
            return None
        if text in ROMAN_YEARS:
            return ROMAN_YEARS[text]
        if not _DIGITS.match(text):
            return None
        year = int(text)
    return year if MIN_YEAR <= year <= MAX_YEAR else None


def normalize_department(value: Any) -> str:
    """Clase/sección libre -> MAYÚSCULAS sin espacios ("cse a" -> "CSEA")."""
    return _WHITESPACE.sub("", to_str(value).upper())


def collapse_address(value: Any) -> str:
    return _LINE_BREAKS.sub("; ", to_str(value))


def normalize_row(
    header_index: CanonicalHeaderIndex,
    row: Sequence[Any],
    row_number: int,
) -> StudentRecord:
    """
    Mapea una fila cruda a StudentRecord.

    Args:
        header_index: {campo -> posición} (ver build_header_index)
        row: celdas de la fila (puede venir más corta que los headers)
        row_number: número de fila en la hoja (1-based, para diagnóstico)
    """

    def cell(key: str) -> Any:
        pos = header_index.get(key)
        if pos is None or pos >= len(row):
            return None
        return row[pos]

    extra = {
        key: to_str(row[pos]) if pos < len(row) else ""
        for key, pos in header_index.items()
        if key not in CANONICAL_FIELDS
    }

    record = StudentRecord(
        register_no=to_str(cell("register_no")),
        name=to_str(cell("name")),
        father_name=to_str(cell("father_name")),
        mother_name=to_str(cell("mother_name")),
        address=collapse_address(cell("address")),
        department=normalize_department(cell(CLASS_SOURCE_FIELD)),
        year=normalize_year(cell("year")),
        email=to_str(cell("email")),
        attendance_percentage=to_number(cell("attendance_percentage")),
        present_today=to_number(cell("present_today")),
        leave_taken=to_number(cell("leave_taken")),
        result_percentage=to_number(cell("result_percentage")),
        phone_number=to_str(cell("phone_number")),
        parents_number=to_str(cell("parents_number")),
        blood_group=to_str(cell("blood_group")),
        hostel=to_str(cell("hostel")) or None,
        dob=to_date(cell("dob")),
        profile_image_url=to_str(cell("profile_image_url")),
        disciplinary_action=to_str(cell("disciplinary_action")),
        year_of_passing=to_number(cell("year_of_passing")),
        mentor=to_str(cell("mentor")),
        row_number=row_number,
        extra=extra,
    )

    logger.debug(
        f"[PARSE] row {row_number} register_no={record.register_no or '(unknown)'} "
        f"email={record.email or '(blank)'} phone={record.phone_number or '(blank)'}"
    )
    return record


def normalize_rows(table: RawTable) -> list[StudentRecord]:
    """
    Normaliza todas las filas de la tabla.
    La fila 1 es el header, por eso la primera fila de datos es la 2.
    """
    header_index = build_header_index(table.headers)
    logger.info(f"Headers reconocidos: {list(header_index.keys())}")

    records = [
        normalize_row(header_index, row, row_number)
        for row_number, row in enumerate(table.rows, start=2)
    ]

    if records:
        sample = records[0]
        logger.info(
            f"[SAMPLE ROW] register_no={sample.register_no or '(unknown)'} "
            f"disciplinary_action={sample.disciplinary_action or '(blank)'} "
            f"year_of_passing={sample.year_of_passing}"
        )
    else:
        logger.warning("La hoja no tiene filas de datos tras el parseo. Nada que procesar.")
    return records
