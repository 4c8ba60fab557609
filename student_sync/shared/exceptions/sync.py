"""
Excepciones de etapa del pipeline Google Sheets -> PostgreSQL.

Todas son fatales: abortan la corrida completa. Los problemas por fila
no se modelan como excepciones (ver ValidationWarning en types.py).
"""
from typing import Any, Optional

from student_sync.shared.exceptions.base import SyncException


class ConfigError(SyncException):
    """Configuración obligatoria ausente o mal formada (pre-flight)."""

    def __init__(self, message: str, variable: Optional[str] = None):
        details = {"variable": variable} if variable else None
        super().__init__(
            message=message,
            error_code="CONFIG_ERROR",
            details=details
        )


class FetchError(SyncException):
    """Error de red/transporte al leer la hoja, tras agotar reintentos."""

    def __init__(self, message: str, attempts: int = 0, details: Optional[dict[str, Any]] = None):
        data = dict(details or {})
        data["attempts"] = attempts
        super().__init__(
            message=message,
            error_code="FETCH_ERROR",
            details=data
        )


class AuthError(SyncException):
    """La fuente rechazó las credenciales (401/403). No se reintenta."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(
            message=message,
            error_code="AUTH_ERROR",
            details={"status_code": status_code} if status_code else None
        )


class EmptySourceError(SyncException):
    """La fuente no devolvió datos utilizables."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="EMPTY_SOURCE"
        )


class StorageError(SyncException):
    """Fallo de lectura/escritura en la tabla destino."""

    def __init__(self, message: str, batch_index: Optional[int] = None):
        details = {"batch_index": batch_index} if batch_index is not None else None
        super().__init__(
            message=message,
            error_code="STORAGE_ERROR",
            details=details
        )
        self.batch_index = batch_index
