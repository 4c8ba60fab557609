"""
Validación, derivación de asistencia y deduplicación de StudentRecord.

Reglas:
- Validación consultiva: se calculan warnings por fila y solo algunos excluyen
  la fila (register_no ausente/inválido, clase o año ausente).
- Asistencia: si la fila trae present_today o leave_taken, el porcentaje se
  recalcula siempre y pisa el valor leído de la hoja.
- Deduplicación por register_no: orden de la hoja, gana la última fila.
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import asdict, replace
from pathlib import Path
from typing import Iterable, Optional

from loguru import logger

from .types import FailedRow, Number, StudentRecord, ValidationResult, ValidationWarning

REGISTER_NO_PATTERN = re.compile(r"^[A-Za-z0-9/_-]+$")

W_REGISTER_MISSING = "register_no missing"
W_REGISTER_INVALID = "register_no invalid"
W_NAME_MISSING = "name missing"
W_CLASS_MISSING = "class missing"
W_YEAR_MISSING = "year missing"

REASON_CLASS_YEAR_MISSING = "class/year missing"


def validate_record(record: StudentRecord) -> list[str]:
    """Warnings de una fila, en orden estable."""
    warnings: list[str] = []
    if not record.register_no:
        warnings.append(W_REGISTER_MISSING)
    if not record.name:
        warnings.append(W_NAME_MISSING)
    if not REGISTER_NO_PATTERN.match(record.register_no or ""):
        warnings.append(W_REGISTER_INVALID)
    if not record.department.strip():
        warnings.append(W_CLASS_MISSING)
    if record.year is None:
        warnings.append(W_YEAR_MISSING)
    return warnings


def exclusion_reason(warnings: list[str]) -> Optional[str]:
    """Motivo de exclusión, o None si los warnings no son fatales para la fila."""
    if W_REGISTER_MISSING in warnings:
        return W_REGISTER_MISSING
    if W_REGISTER_INVALID in warnings:
        return W_REGISTER_INVALID
    if W_CLASS_MISSING in warnings or W_YEAR_MISSING in warnings:
        return REASON_CLASS_YEAR_MISSING
    return None


def derive_attendance(present: Optional[Number], leave: Optional[Number]) -> float:
    """
    present / (present + leave) * 100, redondeado a 2 decimales.
    Denominador 0 o resultado no finito -> 0.
    """
    present_v = float(present or 0)
    total = present_v + float(leave or 0)
    if total == 0:
        return 0.0
    percentage = present_v / total * 100
    if not math.isfinite(percentage):
        return 0.0
    return round(percentage, 2)


def validate_records(records: Iterable[StudentRecord]) -> ValidationResult:
    """
    Separa filas válidas de fallidas. Las válidas salen con la asistencia
    ya derivada (instancias nuevas, el input no se modifica).
    """
    result = ValidationResult()

    for record in records:
        warnings = validate_record(record)
        if warnings:
            logger.info(f"Fila {record.row_number} warnings: {'; '.join(warnings)}")
            result.warnings.append(
                ValidationWarning(
                    row_number=record.row_number,
                    register_no=record.register_no,
                    messages=tuple(warnings),
                )
            )

        reason = exclusion_reason(warnings)
        if reason:
            result.failed_rows.append(
                FailedRow(row_number=record.row_number, reason=reason, register_no=record.register_no)
            )
            continue

        if record.has_attendance_data():
            record = replace(
                record,
                attendance_percentage=derive_attendance(record.present_today, record.leave_taken),
            )
        result.valid_rows.append(record)

    logger.info(
        f"Validacion: {len(result.valid_rows)} validas, {len(result.failed_rows)} excluidas"
    )
    return result


def find_duplicate_keys(records: Iterable[StudentRecord]) -> list[str]:
    """register_no repetidos, en orden de primera repetición."""
    seen: set[str] = set()
    dupes: list[str] = []
    for record in records:
        key = record.register_no
        if not key:
            continue
        if key in seen and key not in dupes:
            dupes.append(key)
        seen.add(key)
    return dupes


def dedupe_by_register_no(records: Iterable[StudentRecord]) -> list[StudentRecord]:
    """
    Colapsa duplicados por register_no: gana la última aparición en la hoja.
    El orden de salida es el de la primera aparición de cada clave.
    """
    records = list(records)
    dupes = find_duplicate_keys(records)
    if dupes:
        logger.warning(f"register_no duplicados en la hoja (gana la ultima fila): {dupes}")

    by_key: dict[str, StudentRecord] = {}
    for record in records:
        if not record.register_no:
            continue
        by_key[record.register_no] = record

    deduped = list(by_key.values())
    logger.info(f"Filas deduplicadas: {len(records)} -> {len(deduped)}")
    return deduped


def write_failed_rows_report(path: str | Path, failed_rows: Iterable[FailedRow]) -> Path:
    """Vuelca las filas fallidas a JSON (para revisión manual)."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    payload = [asdict(f) for f in failed_rows]
    target.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    logger.info(f"Reporte de filas fallidas: {target} ({len(payload)} filas)")
    return target
