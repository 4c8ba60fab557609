"""
Excepción base para todas las excepciones del job de sincronización.
"""
from typing import Optional, Dict, Any


class SyncException(Exception):
    """
    Excepción base del pipeline.
    Todas las excepciones de etapa (fatales) deben heredar de esta clase.
    """

    exit_code: int = 1

    def __init__(
        self,
        message: str,
        error_code: str = "SYNC_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Inicializa la excepción.

        Args:
            message: Mensaje de error descriptivo
            error_code: Código de error personalizado
            details: Detalles adicionales del error
        """
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)
