"""
Configuración de fixtures para pytest.

Los tests no tocan red ni Postgres: usan un repositorio en memoria con la
misma interfaz que PostgresStudentRepository y un fetcher falso.
"""
from __future__ import annotations

from typing import Any, Iterable, Optional

import pytest

from student_sync.infrastructure.external.sheets_sync.types import RawTable
from student_sync.shared.exceptions.sync import StorageError


class FakeConnection:
    """Conexión falsa: solo cuenta commits/rollbacks/close."""

    def __init__(self) -> None:
        self.commits = 0
        self.rollbacks = 0
        self.closed = False

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1

    def close(self) -> None:
        self.closed = True


class FakeStudentRepository:
    """
    Tabla destino en memoria, indexada por register_no.

    fail_on_upsert_call: número (0-based) de llamada a upsert_students que falla.
    """

    def __init__(self, rows: Optional[dict[str, dict[str, Any]]] = None) -> None:
        self.rows: dict[str, dict[str, Any]] = {k: dict(v) for k, v in (rows or {}).items()}
        self.fail_on_upsert_call: Optional[int] = None
        self.upsert_calls: list[list[dict[str, Any]]] = []
        self.deleted_keys: list[set[str]] = []
        self.delete_all_calls = 0
        self.connections: list[FakeConnection] = []

    def connect(self) -> FakeConnection:
        conn = FakeConnection()
        self.connections.append(conn)
        return conn

    def fetch_existing_keys(self, conn: Any) -> set[str]:
        return set(self.rows.keys())

    def upsert_students(self, conn: Any, rows: Iterable[dict[str, Any]]) -> int:
        rows = list(rows)
        call_index = len(self.upsert_calls)
        self.upsert_calls.append(rows)
        if self.fail_on_upsert_call is not None and call_index == self.fail_on_upsert_call:
            raise StorageError("duplicate key value violates unique constraint")
        for row in rows:
            current = self.rows.setdefault(row["register_no"], {})
            current.update(row)
        return len(rows)

    def delete_by_keys(self, conn: Any, keys: Iterable[str]) -> int:
        keys = set(keys)
        self.deleted_keys.append(keys)
        removed = 0
        for key in keys:
            if self.rows.pop(key, None) is not None:
                removed += 1
        return removed

    def delete_all(self, conn: Any) -> int:
        self.delete_all_calls += 1
        removed = len(self.rows)
        self.rows.clear()
        return removed


class FakeFetcher:
    def __init__(self, table: RawTable, strategy: str = "public_csv") -> None:
        self.table = table
        self.strategy = strategy
        self.calls = 0

    def fetch(self) -> RawTable:
        self.calls += 1
        return self.table


SHEET_HEADERS = [
    "Register No",
    "Name",
    "Father Name",
    "Class",
    "Year",
    "Email",
    "Present to class (today)",
    "Leave Taken",
    "Overall Attendance Percentage",
    "Student Number",
    "DOB",
    "Hostel",
    "Club",
]


@pytest.fixture
def fake_repo() -> FakeStudentRepository:
    return FakeStudentRepository()


@pytest.fixture
def sheet_table() -> RawTable:
    """Hoja de ejemplo con formatos heterogéneos."""
    return RawTable(
        headers=list(SHEET_HEADERS),
        rows=[
            ["21CS001", "Asha", "Ravi", "cse a", "III", "asha@college.edu", "18", "2", "50", "9876543210", "2004-05-12", "", "Robotics"],
            ["21CS002", "Bala", "Kumar", "CSE B", "3", "", "", "", "77.5", "", "12/01/2003", "Yes", ""],
            ["", "NoKey", "", "CSE A", "2", "", "", "", "", "", "", "", ""],
            ["21CS003", "Chitra", "", "", "2", "", "", "", "", "", "", "", ""],
            ["21CS004", "Dinesh", "", "ECE", "VII", "", "", "", "", "", "", "", ""],
            ["21 CS 005", "Esha", "", "ECE", "1", "", "", "", "", "", "", "", ""],
        ],
    )


@pytest.fixture
def repo_factory():
    """Clase del repositorio falso, para tests que arman su propio estado."""
    return FakeStudentRepository


@pytest.fixture
def fetcher_factory():
    return FakeFetcher
