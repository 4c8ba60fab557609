"""
Configuracion de logging (loguru) para ejecucion como job.
"""
import sys
from typing import Optional

from loguru import logger


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Reinicia los sinks de loguru: stderr siempre, archivo rotativo si se indica.

    Args:
        level: Nivel minimo (DEBUG, INFO, WARNING...)
        log_file: Ruta del archivo de log (opcional)
    """
    level = (level or "INFO").upper()
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )

    if log_file:
        logger.add(
            log_file,
            rotation="500 MB",
            retention="10 days",
            level=level
        )
