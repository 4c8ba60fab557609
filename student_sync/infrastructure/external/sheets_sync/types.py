"""
Tipos y utilidades puras para el pipeline Google Sheets -> Postgres.

Se mantienen libres de I/O para poder testearlos fácilmente.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional, Union

Number = Union[int, float]

# Campos canónicos, en el orden de columnas de la tabla destino.
CANONICAL_FIELDS: tuple[str, ...] = (
    "register_no",
    "name",
    "father_name",
    "mother_name",
    "address",
    "department",
    "year",
    "email",
    "attendance_percentage",
    "present_today",
    "leave_taken",
    "result_percentage",
    "phone_number",
    "parents_number",
    "blood_group",
    "hostel",
    "dob",
    "profile_image_url",
    "disciplinary_action",
    "year_of_passing",
    "mentor",
)

PRIMARY_KEY = "register_no"

CanonicalHeaderIndex = dict[str, int]


@dataclass(frozen=True)
class RawTable:
    """Tabla cruda: fila de headers + filas de datos (no necesariamente rectangulares)."""

    headers: list[str] = field(default_factory=list)
    rows: list[list[str]] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.headers and not self.rows


@dataclass(frozen=True)
class StudentRecord:
    """
    Registro de estudiante con todos los campos canónicos tipados.

    - register_no: PK textual
    - year: entero 1..6 o None
    - dob: fecha ISO (YYYY-MM-DD) o None
    - extra: columnas no reconocidas de la hoja (se conservan, no se persisten)
    """

    register_no: str = ""
    name: str = ""
    father_name: str = ""
    mother_name: str = ""
    address: str = ""
    department: str = ""
    year: Optional[int] = None
    email: str = ""
    attendance_percentage: Optional[Number] = None
    present_today: Optional[Number] = None
    leave_taken: Optional[Number] = None
    result_percentage: Optional[Number] = None
    phone_number: str = ""
    parents_number: str = ""
    blood_group: str = ""
    hostel: Optional[str] = None
    dob: Optional[str] = None
    profile_image_url: str = ""
    disciplinary_action: str = ""
    year_of_passing: Optional[Number] = None
    mentor: str = ""
    row_number: int = 0
    extra: dict[str, str] = field(default_factory=dict, compare=False)

    def has_attendance_data(self) -> bool:
        return self.present_today is not None or self.leave_taken is not None

    def to_payload(self) -> dict[str, Any]:
        """Columnas canónicas listas para UPSERT (sin row_number ni extra)."""
        data = asdict(self)
        return {k: data[k] for k in CANONICAL_FIELDS}


@dataclass(frozen=True)
class ValidationWarning:
    """Advertencias no fatales de una fila."""

    row_number: int
    register_no: str
    messages: tuple[str, ...]


@dataclass(frozen=True)
class FailedRow:
    """Fila excluida del sync, con el motivo."""

    row_number: int
    reason: str
    register_no: str = ""


@dataclass
class ValidationResult:
    valid_rows: list[StudentRecord] = field(default_factory=list)
    failed_rows: list[FailedRow] = field(default_factory=list)
    warnings: list[ValidationWarning] = field(default_factory=list)


@dataclass(frozen=True)
class ReconcileResult:
    upserted: int
    deleted: int
    skipped: int = 0


@dataclass(frozen=True)
class SyncSummary:
    total_rows: int
    processed_rows: int
    failed_rows: int
    deleted_rows: int
    duplicate_keys: int
    strategy: str
    duration_ms: int
