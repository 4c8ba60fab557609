"""
Repositorio Postgres (psycopg) para la tabla destino de estudiantes:
- UPSERT por register_no
- DELETE por conjunto de claves
- DELETE total (espejo de hoja vacía)

El caller controla commits/rollbacks sobre la conexión.
Todo psycopg.Error se re-lanza como StorageError con el mensaje original.
"""

from __future__ import annotations

from importlib import resources
from typing import Any, Iterable

import psycopg
from psycopg.rows import dict_row

from student_sync.shared.exceptions.sync import StorageError

from .types import PRIMARY_KEY


def read_schema_sql(schema: str = "public", table: str = "students") -> str:
    """DDL recomendado de la tabla destino."""
    template = (
        resources.files("student_sync.infrastructure.external.sheets_sync")
        .joinpath("schema.sql")
        .read_text(encoding="utf-8")
    )
    return template.replace("{schema}", schema).replace("{table}", table)


class PostgresStudentRepository:
    def __init__(self, dsn: str, *, schema: str = "public", table: str = "students") -> None:
        self._dsn = dsn
        self._schema = schema
        self._table = table

    @property
    def qualified_table(self) -> str:
        return f'"{self._schema}"."{self._table}"'

    def connect(self) -> psycopg.Connection:
        """
        Abre conexión (autocommit False). El caller controla commits.
        """
        try:
            return psycopg.connect(self._dsn, row_factory=dict_row)
        except psycopg.OperationalError as e:
            raise StorageError(
                f"No se pudo conectar a Postgres: {e}. "
                f"Verifica que DATABASE_URL sea accesible desde donde ejecutas el job."
            ) from e

    def ensure_table(self, conn: psycopg.Connection) -> None:
        try:
            with conn.cursor() as cur:
                cur.execute(read_schema_sql(self._schema, self._table))
        except psycopg.Error as e:
            raise StorageError(f"No se pudo crear/verificar la tabla {self.qualified_table}: {e}") from e

    def fetch_existing_keys(self, conn: psycopg.Connection) -> set[str]:
        """register_no presentes hoy en destino (sin vacíos)."""
        try:
            with conn.cursor() as cur:
                cur.execute(f'SELECT "{PRIMARY_KEY}" FROM {self.qualified_table}')
                rows = cur.fetchall()
        except psycopg.Error as e:
            raise StorageError(f"Fetch de estudiantes existentes fallo: {e}") from e

        keys = {str(r[PRIMARY_KEY] or "").strip() for r in rows}
        keys.discard("")
        return keys

    def upsert_students(self, conn: psycopg.Connection, rows: Iterable[dict[str, Any]]) -> int:
        """
        UPSERT por register_no: inserta si no existe, si existe pisa todas
        las columnas provistas en la fila.

        Las filas pueden traer distintos conjuntos de columnas (p.ej. sin
        email cuando está en blanco); se agrupan por conjunto de columnas.
        """
        rows_list = list(rows)
        if not rows_list:
            return 0

        groups: dict[tuple[str, ...], list[dict[str, Any]]] = {}
        for row in rows_list:
            if not row.get(PRIMARY_KEY):
                raise ValueError(f"Falta PK '{PRIMARY_KEY}' en row para UPSERT")
            groups.setdefault(tuple(row.keys()), []).append(row)

        try:
            with conn.cursor() as cur:
                for columns, group in groups.items():
                    cur.executemany(
                        self._upsert_sql(columns),
                        [tuple(row[c] for c in columns) for row in group],
                    )
        except psycopg.Error as e:
            raise StorageError(f"UPSERT de estudiantes fallo: {e}") from e
        return len(rows_list)

    def delete_by_keys(self, conn: psycopg.Connection, keys: Iterable[str]) -> int:
        keys_list = sorted({k for k in keys if k})
        if not keys_list:
            return 0
        try:
            with conn.cursor() as cur:
                cur.execute(
                    f'DELETE FROM {self.qualified_table} WHERE "{PRIMARY_KEY}" = ANY(%s)',
                    (keys_list,),
                )
                return cur.rowcount or 0
        except psycopg.Error as e:
            raise StorageError(f"Borrado de estudiantes ausentes fallo: {e}") from e

    def delete_all(self, conn: psycopg.Connection) -> int:
        """Borra TODA la tabla destino. Solo para espejar una hoja vacía."""
        try:
            with conn.cursor() as cur:
                cur.execute(f"DELETE FROM {self.qualified_table}")
                return cur.rowcount or 0
        except psycopg.Error as e:
            raise StorageError(f"Borrado total de estudiantes fallo: {e}") from e

    def _upsert_sql(self, columns: tuple[str, ...]) -> str:
        quoted_cols = ", ".join(f'"{c}"' for c in columns)
        placeholders = ", ".join(["%s"] * len(columns))

        # SET para UPDATE: no actualizamos PK.
        set_parts = [f'"{c}" = EXCLUDED."{c}"' for c in columns if c != PRIMARY_KEY]
        set_parts.append('"last_updated" = now()')
        set_sql = ", ".join(set_parts)

        return f"""
            INSERT INTO {self.qualified_table} ({quoted_cols})
            VALUES ({placeholders})
            ON CONFLICT ("{PRIMARY_KEY}")
            DO UPDATE SET
                {set_sql}
        """
