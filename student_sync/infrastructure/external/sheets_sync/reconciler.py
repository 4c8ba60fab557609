"""
Motor de reconciliación ("hard sync") hoja -> tabla destino.

Orden fijo: primero DELETE de claves ausentes en la hoja (commit), luego
UPSERT por lotes secuenciales (commit por lote). Así nunca se borran filas
recién insertadas en la misma corrida.

Fallo de un lote: rollback de ese lote y StorageError con el índice del lote.
Los lotes anteriores quedan confirmados (no hay checkpoint/resume).
"""

from __future__ import annotations

from typing import Any, Iterable, Optional, Protocol, Sequence

from loguru import logger

from student_sync.shared.exceptions.sync import EmptySourceError, StorageError

from .row_normalizer import normalize_year
from .types import ReconcileResult, StudentRecord

DEFAULT_BATCH_SIZE = 500
OPTIONAL_BLANK_KEYS = ("email", "phone_number")


class StudentTableRepository(Protocol):
    """Capacidad mínima que el motor necesita de la tabla destino."""

    def fetch_existing_keys(self, conn: Any) -> set[str]: ...

    def upsert_students(self, conn: Any, rows: Iterable[dict[str, Any]]) -> int: ...

    def delete_by_keys(self, conn: Any, keys: Iterable[str]) -> int: ...

    def delete_all(self, conn: Any) -> int: ...


def chunked(items: Sequence[StudentRecord], size: int) -> list[Sequence[StudentRecord]]:
    if size <= 0:
        raise ValueError("batch_size debe ser > 0")
    return [items[i:i + size] for i in range(0, len(items), size)]


def build_upsert_payload(record: StudentRecord) -> Optional[dict[str, Any]]:
    """
    Limpieza por registro antes del UPSERT.

    - email/phone_number en blanco no se escriben (se quita la clave)
    - year debe re-normalizar a 1..6; si no, el registro se omite (None)
    """
    year = normalize_year(record.year)
    if year is None:
        logger.warning(
            f"Omitiendo register_no={record.register_no} (fila {record.row_number}): year invalido ({record.year!r})"
        )
        return None

    payload = record.to_payload()
    payload["year"] = year
    for key in OPTIONAL_BLANK_KEYS:
        value = payload.get(key)
        if isinstance(value, str) and not value.strip():
            del payload[key]
    return payload


class StudentReconciler:
    """
    Deja el conjunto de register_no y los valores de la tabla destino
    idénticos al conjunto válido y deduplicado de la hoja.
    """

    def __init__(
        self,
        repo: StudentTableRepository,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        allow_empty_wipe: bool = False,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size debe ser > 0")
        self._repo = repo
        self._batch_size = batch_size
        self._allow_empty_wipe = allow_empty_wipe

    def reconcile(self, conn: Any, records: Sequence[StudentRecord]) -> ReconcileResult:
        source_keys = {r.register_no.strip() for r in records if r.register_no and r.register_no.strip()}

        deleted = self.delete_missing(conn, source_keys)
        upserted, skipped = self.upsert_batches(conn, records)
        return ReconcileResult(upserted=upserted, deleted=deleted, skipped=skipped)

    def delete_missing(self, conn: Any, source_keys: set[str]) -> int:
        """
        Borra de destino las claves ausentes en la hoja.

        PELIGRO: con source_keys vacío se interpreta "espejar hoja vacía" y se
        borra TODA la tabla. Requiere allow_empty_wipe=True; sin el opt-in
        la corrida aborta antes de tocar el destino.
        """
        if not source_keys:
            if not self._allow_empty_wipe:
                raise EmptySourceError(
                    "La hoja no tiene registros validos: el hard sync borraria TODA la tabla destino. "
                    "Usa --allow-empty-wipe o SYNC_ALLOW_EMPTY_WIPE=true si es intencional."
                )
            logger.warning("Hard sync: hoja sin registros validos. Borrando TODOS los estudiantes para espejar la hoja vacia.")
            deleted = self._in_transaction(conn, lambda: self._repo.delete_all(conn))
            logger.warning(f"Borrado total completado: {deleted} filas")
            return deleted

        existing = self._repo.fetch_existing_keys(conn)
        missing = existing - source_keys
        if not missing:
            logger.info("Hard sync: no hay estudiantes para borrar")
            return 0

        logger.info(f"Hard sync: borrando {len(missing)} estudiantes ausentes en la hoja")
        return self._in_transaction(conn, lambda: self._repo.delete_by_keys(conn, missing))

    def upsert_batches(self, conn: Any, records: Sequence[StudentRecord]) -> tuple[int, int]:
        """UPSERT secuencial por lotes. Retorna (upserted, skipped)."""
        upserted = 0
        skipped = 0
        batches = chunked(list(records), self._batch_size)
        logger.info(f"Iniciando UPSERT de {len(records)} registros en {len(batches)} lotes")

        for index, batch in enumerate(batches):
            payloads = []
            for record in batch:
                payload = build_upsert_payload(record)
                if payload is None:
                    skipped += 1
                    continue
                payloads.append(payload)

            if not payloads:
                continue

            logger.debug(f"UPSERT payload preview (lote {index}): {payloads[:3]}")
            try:
                count = self._in_transaction(conn, lambda: self._repo.upsert_students(conn, payloads))
            except StorageError as e:
                raise StorageError(f"Lote {index} fallo: {e.message}", batch_index=index) from e

            upserted += count
            logger.info(f"Lote {index}: {count} registros (acumulado {upserted})")

        return upserted, skipped

    @staticmethod
    def _in_transaction(conn: Any, operation):
        try:
            result = operation()
            conn.commit()
            return result
        except Exception:
            conn.rollback()
            raise
