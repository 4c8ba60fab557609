"""
CLI: Google Sheet -> Postgres (hard sync one-way de estudiantes).

Uso recomendado:
  - Ejecutar como job (cron/systemd timer), una instancia a la vez.
  - El exit code distingue éxito (0) de fallo (1) para el scheduler.

Variables de entorno requeridas:
  - DATABASE_URL (postgresql://... o postgres://...)
  - GOOGLE_SHEET_ID

Ejecución:
  student-sheet-sync
  student-sheet-sync --schema-only
  student-sheet-sync --init-table
  student-sheet-sync --allow-empty-wipe
"""

from __future__ import annotations

import argparse
import os
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv
from loguru import logger
from pydantic import ValidationError

from student_sync.core.config import SyncSettings
from student_sync.core.logging_config import configure_logging
from student_sync.infrastructure.external.sheets_sync.pg_repository import (
    PostgresStudentRepository,
    read_schema_sql,
)
from student_sync.infrastructure.external.sheets_sync.sync_service import build_from_settings
from student_sync.shared.exceptions.base import SyncException

_PROJECT_ROOT = Path(__file__).resolve().parents[1]

EXIT_OK = 0
EXIT_FAILURE = 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="student-sheet-sync",
        description="Sincroniza la hoja de estudiantes (Google Sheets) con la tabla Postgres.",
    )
    parser.add_argument(
        "--schema-only",
        action="store_true",
        help="Solo imprime el DDL recomendado (no ejecuta sync).",
    )
    parser.add_argument(
        "--init-table",
        action="store_true",
        help="Crea el schema/tabla destino si no existen y termina.",
    )
    parser.add_argument(
        "--allow-empty-wipe",
        action="store_true",
        default=None,
        help=(
            "PELIGRO: si la hoja no trae registros validos, borra TODA la tabla destino "
            "para espejarla. Sin este flag (o SYNC_ALLOW_EMPTY_WIPE=true) la corrida aborta."
        ),
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Nivel de log (override de LOG_LEVEL).",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    # .env del proyecto y del cwd; el entorno real tiene prioridad.
    load_dotenv(_PROJECT_ROOT / ".env", override=False)
    load_dotenv(Path(os.getcwd()) / ".env", override=False)

    try:
        settings = SyncSettings()
    except ValidationError as e:
        configure_logging(args.log_level or "INFO")
        logger.error(f"Configuracion invalida: {e}")
        return EXIT_FAILURE
    configure_logging(args.log_level or settings.LOG_LEVEL, settings.LOG_FILE or None)

    if args.schema_only:
        print(read_schema_sql(settings.STUDENTS_SCHEMA, settings.STUDENTS_TABLE))
        return EXIT_OK

    try:
        if args.init_table:
            settings.require()
            repo = PostgresStudentRepository(
                settings.effective_database_url,
                schema=settings.STUDENTS_SCHEMA,
                table=settings.STUDENTS_TABLE,
            )
            conn = repo.connect()
            try:
                repo.ensure_table(conn)
                conn.commit()
            finally:
                conn.close()
            logger.info(f"Tabla destino lista: {repo.qualified_table}")
            return EXIT_OK

        service = build_from_settings(settings, allow_empty_wipe=args.allow_empty_wipe)
        service.run_once()
        return EXIT_OK
    except SyncException as e:
        logger.error(f"Sync fallido [{e.error_code}]: {e.message}")
        if e.details:
            logger.error(f"Detalles: {e.details}")
        return e.exit_code
    except Exception as e:
        logger.exception(f"Sync fallido por error inesperado: {e}")
        return EXIT_FAILURE


if __name__ == "__main__":
    raise SystemExit(main())
