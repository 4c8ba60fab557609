"""
Tests end-to-end del orquestador con fetcher y destino en memoria.

Verifican las propiedades del hard sync: idempotencia, espejo de claves,
deduplicación (gana la última fila) y exclusión de filas inválidas.
"""
from __future__ import annotations

import json

import pytest

from student_sync.core.config import SyncSettings
from student_sync.infrastructure.external.sheets_sync.pg_repository import PostgresStudentRepository
from student_sync.infrastructure.external.sheets_sync.reconciler import StudentReconciler
from student_sync.infrastructure.external.sheets_sync.sheets_client import GoogleSheetsClient
from student_sync.infrastructure.external.sheets_sync.sync_service import (
    SheetToPostgresSync,
    build_from_settings,
)
from student_sync.infrastructure.external.sheets_sync.types import RawTable
from student_sync.shared.exceptions.sync import EmptySourceError, StorageError


def _service(fetcher, repo, **kwargs) -> SheetToPostgresSync:
    reconciler = StudentReconciler(
        repo,
        batch_size=kwargs.pop("batch_size", 500),
        allow_empty_wipe=kwargs.pop("allow_empty_wipe", False),
    )
    return SheetToPostgresSync(fetcher=fetcher, db=repo, reconciler=reconciler, **kwargs)


class TestRunOnce:

    def test_summary_counts(self, sheet_table, fetcher_factory, fake_repo) -> None:
        summary = _service(fetcher_factory(sheet_table), fake_repo).run_once()

        assert summary.total_rows == 6
        assert summary.processed_rows == 2
        assert summary.failed_rows == 4
        assert summary.deleted_rows == 0
        assert summary.strategy == "public_csv"
        assert summary.duration_ms >= 0

    def test_destination_values(self, sheet_table, fetcher_factory, fake_repo) -> None:
        _service(fetcher_factory(sheet_table), fake_repo).run_once()

        asha = fake_repo.rows["21CS001"]
        assert asha["department"] == "CSEA"
        assert asha["year"] == 3
        assert asha["attendance_percentage"] == 90.0
        assert asha["email"] == "asha@college.edu"
        assert asha["dob"] == "2004-05-12"
        assert "club" not in asha

        bala = fake_repo.rows["21CS002"]
        assert bala["attendance_percentage"] == 77.5
        assert "email" not in bala
        assert "phone_number" not in bala
        assert bala["hostel"] == "Yes"

    def test_missing_register_no_row_never_reaches_destination(self, sheet_table, fetcher_factory, fake_repo) -> None:
        _service(fetcher_factory(sheet_table), fake_repo).run_once()
        names = {row["name"] for row in fake_repo.rows.values()}
        assert "NoKey" not in names

    def test_mirror_invariant_deletes_absent_keys(self, sheet_table, fetcher_factory, repo_factory) -> None:
        repo = repo_factory({
            "OLD001": {"register_no": "OLD001", "name": "Graduated"},
            "21CS002": {"register_no": "21CS002", "name": "Old name"},
        })
        summary = _service(fetcher_factory(sheet_table), repo).run_once()

        assert set(repo.rows) == {"21CS001", "21CS002"}
        assert repo.rows["21CS002"]["name"] == "Bala"
        assert summary.deleted_rows == 1

    def test_idempotent_runs(self, sheet_table, fetcher_factory, fake_repo) -> None:
        service = _service(fetcher_factory(sheet_table), fake_repo)
        first = service.run_once()
        snapshot = {k: dict(v) for k, v in fake_repo.rows.items()}
        second = service.run_once()

        assert fake_repo.rows == snapshot
        assert first.processed_rows == second.processed_rows
        assert second.deleted_rows == 0

    def test_duplicate_keys_last_row_wins(self, fetcher_factory, fake_repo) -> None:
        table = RawTable(
            headers=["Register No", "Name", "Class", "Year"],
            rows=[
                ["21CS001", "First Version", "CSE", "1"],
                ["21CS002", "Other", "CSE", "1"],
                ["21CS001", "Second Version", "ECE", "2"],
            ],
        )
        summary = _service(fetcher_factory(table), fake_repo).run_once()

        assert summary.duplicate_keys == 1
        assert summary.processed_rows == 2
        assert fake_repo.rows["21CS001"]["name"] == "Second Version"
        assert fake_repo.rows["21CS001"]["department"] == "ECE"

    def test_header_only_sheet_wipes_destination_with_opt_in(self, fetcher_factory, repo_factory) -> None:
        repo = repo_factory({"A1": {"register_no": "A1"}})
        table = RawTable(headers=["Register No", "Name"], rows=[])

        summary = _service(fetcher_factory(table), repo, allow_empty_wipe=True).run_once()

        assert repo.delete_all_calls == 1
        assert repo.rows == {}
        assert summary.total_rows == 0
        assert summary.deleted_rows == 1

    def test_header_only_sheet_without_opt_in_aborts(self, fetcher_factory, repo_factory) -> None:
        repo = repo_factory({"A1": {"register_no": "A1"}})
        table = RawTable(headers=["Register No", "Name"], rows=[])
        with pytest.raises(EmptySourceError):
            _service(fetcher_factory(table), repo).run_once()
        assert set(repo.rows) == {"A1"}

    def test_storage_failure_aborts_and_closes_connection(self, sheet_table, fetcher_factory, fake_repo) -> None:
        fake_repo.fail_on_upsert_call = 0
        with pytest.raises(StorageError) as exc_info:
            _service(fetcher_factory(sheet_table), fake_repo).run_once()
        assert exc_info.value.batch_index == 0
        assert fake_repo.connections[-1].closed is True

    def test_failed_rows_report(self, sheet_table, fetcher_factory, fake_repo, tmp_path) -> None:
        report = tmp_path / "failed_rows.json"
        _service(fetcher_factory(sheet_table), fake_repo, failed_rows_report_path=str(report)).run_once()

        data = json.loads(report.read_text(encoding="utf-8"))
        assert {"row_number": 4, "reason": "register_no missing", "register_no": ""} in data
        assert len(data) == 4


def test_build_from_settings_wires_explicit_handles(monkeypatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    settings = SyncSettings(
        DATABASE_URL="postgresql+asyncpg://u:p@localhost:5432/db",
        GOOGLE_SHEET_ID="sheet123",
        GOOGLE_API_KEY="k3y",
        GOOGLE_SERVICE_ACCOUNT_JSON="",
        GOOGLE_SERVICE_ACCOUNT_JSON_PATH="",
        SYNC_BATCH_SIZE=50,
    )
    service = build_from_settings(settings, allow_empty_wipe=True)

    assert isinstance(service._fetcher, GoogleSheetsClient)
    assert service._fetcher.strategy == "api_key"
    assert isinstance(service._db, PostgresStudentRepository)
    assert service._reconciler._batch_size == 50
    assert service._reconciler._allow_empty_wipe is True
