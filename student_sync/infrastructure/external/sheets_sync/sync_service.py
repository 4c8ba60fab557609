"""
Servicio de sincronización Google Sheets -> Postgres.

Diseño (resumen):
- Lee la hoja con la estrategia resuelta al inicio (service account / API key / CSV)
- Mapea headers a campos canónicos y normaliza tipos
- Valida (filas inválidas -> failed_rows) y deduplica por register_no
- Reconciliación hard sync: DELETE de ausentes, UPSERT por lotes
- Resume conteos y duración

Cada corrida es un batch independiente: no guarda estado entre corridas.
Dos corridas solapadas contra la misma tabla tienen resultado indefinido
(no hay lock de corrida).
"""

from __future__ import annotations

import time
from typing import Any, Optional, Protocol

import requests
from loguru import logger

from student_sync.core.config import SyncSettings, resolve_allow_empty_wipe

from .pg_repository import PostgresStudentRepository
from .reconciler import StudentReconciler
from .record_validator import (
    dedupe_by_register_no,
    find_duplicate_keys,
    validate_records,
    write_failed_rows_report,
)
from .row_normalizer import normalize_rows
from .sheets_client import GoogleSheetsClient
from .types import RawTable, SyncSummary


class SheetFetcher(Protocol):
    strategy: str

    def fetch(self) -> RawTable: ...


class ConnectionProvider(Protocol):
    def connect(self) -> Any: ...


class SheetToPostgresSync:
    """
    Orquestador del pipeline completo (una corrida, no interactiva).
    """

    def __init__(
        self,
        *,
        fetcher: SheetFetcher,
        db: ConnectionProvider,
        reconciler: StudentReconciler,
        failed_rows_report_path: Optional[str] = None,
    ) -> None:
        self._fetcher = fetcher
        self._db = db
        self._reconciler = reconciler
        self._failed_rows_report_path = failed_rows_report_path

    def run_once(self) -> SyncSummary:
        """
        Ejecuta fetch -> normalize -> validate -> dedupe -> reconcile.
        Cualquier error de etapa se propaga (la corrida aborta).
        """
        started = time.monotonic()
        logger.info("Iniciando sync Google Sheet -> Postgres...")

        table = self._fetcher.fetch()
        records = normalize_rows(table)

        validation = validate_records(records)
        if self._failed_rows_report_path and validation.failed_rows:
            write_failed_rows_report(self._failed_rows_report_path, validation.failed_rows)

        duplicate_keys = find_duplicate_keys(validation.valid_rows)
        deduped = dedupe_by_register_no(validation.valid_rows)

        conn = self._db.connect()
        try:
            result = self._reconciler.reconcile(conn, deduped)
        finally:
            conn.close()

        summary = SyncSummary(
            total_rows=len(records),
            processed_rows=result.upserted,
            failed_rows=len(validation.failed_rows),
            deleted_rows=result.deleted,
            duplicate_keys=len(duplicate_keys),
            strategy=self._fetcher.strategy,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        log_summary(summary)
        return summary


def log_summary(summary: SyncSummary) -> None:
    logger.info("Resumen del sync:")
    logger.info(f" - Estrategia: {summary.strategy}")
    logger.info(f" - Filas totales: {summary.total_rows}")
    logger.info(f" - Filas procesadas: {summary.processed_rows}")
    logger.info(f" - Filas fallidas: {summary.failed_rows}")
    logger.info(f" - Filas borradas: {summary.deleted_rows}")
    logger.info(f" - Claves duplicadas: {summary.duplicate_keys}")
    logger.info(f" - Duracion (ms): {summary.duration_ms}")
    logger.success("Sync completado correctamente")


def build_from_settings(
    settings: SyncSettings,
    *,
    allow_empty_wipe: Optional[bool] = None,
    session: Optional[requests.Session] = None,
) -> SheetToPostgresSync:
    """
    Constructor "oficial" del pipeline a partir de la configuración validada.

    Crea una sola vez los handles (sesión HTTP, cliente de hoja, repositorio)
    y los inyecta explícitamente.
    """
    settings.require()
    source = settings.source_config()
    logger.info(f"Estrategia de lectura: {source.strategy.value}")

    fetcher = GoogleSheetsClient(
        source,
        session=session or requests.Session(),
        max_retries=settings.SYNC_FETCH_MAX_RETRIES,
        backoff_s=settings.SYNC_FETCH_BACKOFF_S,
        timeout_s=settings.SYNC_FETCH_TIMEOUT_S,
    )
    repo = PostgresStudentRepository(
        settings.effective_database_url,
        schema=settings.STUDENTS_SCHEMA,
        table=settings.STUDENTS_TABLE,
    )
    reconciler = StudentReconciler(
        repo,
        batch_size=settings.SYNC_BATCH_SIZE,
        allow_empty_wipe=resolve_allow_empty_wipe(settings, allow_empty_wipe),
    )
    return SheetToPostgresSync(
        fetcher=fetcher,
        db=repo,
        reconciler=reconciler,
        failed_rows_report_path=settings.FAILED_ROWS_REPORT_PATH or None,
    )
