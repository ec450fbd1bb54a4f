"""
Errores de dominio que cruzan la frontera entre los servicios y la capa HTTP.
"""
import logging
from contextlib import contextmanager

from sqlalchemy.exc import DBAPIError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class StorageUnavailableError(Exception):
    """
    La base de datos no respondió (conexión caída, timeout, archivo bloqueado).
    Se traduce a un 503 en main.py; nunca se trata como petición sin sesión.
    """

    def __init__(self, operation: str, original: Exception | None = None):
        self.operation = operation
        self.original = original
        super().__init__(f"Almacenamiento no disponible durante '{operation}'")


def is_transient_db_error(exc: Exception) -> bool:
    """True si el error es de conectividad y no de datos (constraints, sintaxis)."""
    if isinstance(exc, (OperationalError, PoolTimeoutError)):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


@contextmanager
def storage_guard(db: Session, operation: str):
    """
    Envuelve un acceso a la DB: ante un error de conectividad hace rollback
    y lo relanza como StorageUnavailableError. El resto de errores pasan sin cambios.
    """
    try:
        yield
    except (DBAPIError, PoolTimeoutError) as e:
        db.rollback()
        if not is_transient_db_error(e):
            raise
        logger.error(f"Error de almacenamiento en {operation}: {e}", exc_info=True)
        raise StorageUnavailableError(operation, e) from e
