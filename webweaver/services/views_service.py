"""
Registro de vistas (ledger append-only) y consultas de agregación.

La deduplicación la resuelve la base de datos: un único INSERT con
ON CONFLICT (url, session_id) DO NOTHING. No hay consulta previa de existencia,
así dos primeras vistas concurrentes de la misma sesión no pueden duplicarse.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import func, desc
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..exceptions import storage_guard
from ..models.page_view import PageView, PAGE_VIEW_UNIQUE_CONSTRAINT
from ..schemas.views_schema import RecordResult, UrlViewCount, RecentView, ViewDetails
from ..utils import utcnow, normalize_url, mask_session_id

logger = logging.getLogger(__name__)


# ============================================================================
# LEDGER
# ============================================================================

ON_CONFLICT_DIALECTS = ("sqlite", "postgresql")


def dedup_strategy(dialect_name: str) -> str:
    """
    Cómo se deduplica en este motor:
    - "on_conflict": INSERT ... ON CONFLICT DO NOTHING (sqlite, postgresql)
    - "integrity_error": INSERT simple capturando solo el IntegrityError de (url, session_id)
    """
    if dialect_name in ON_CONFLICT_DIALECTS:
        return "on_conflict"
    return "integrity_error"


def _conflict_free_insert(db: Session, values: dict):
    """
    INSERT que ignora solo el conflicto sobre (url, session_id).
    Devuelve None si el dialecto no soporta ON CONFLICT.
    """
    dialect = db.get_bind().dialect.name
    if dedup_strategy(dialect) != "on_conflict":
        return None

    if dialect == "sqlite":
        return sqlite_insert(PageView).values(**values).on_conflict_do_nothing(
            index_elements=["url", "session_id"]
        )
    return pg_insert(PageView).values(**values).on_conflict_do_nothing(
        constraint=PAGE_VIEW_UNIQUE_CONSTRAINT
    )


def is_duplicate_view_error(error: IntegrityError) -> bool:
    """
    True solo si el IntegrityError viene de la restricción (url, session_id).
    Cualquier otra violación (NOT NULL, FK, etc.) es un error real.
    """
    orig = error.orig
    diag = getattr(orig, "diag", None)
    constraint_name = getattr(diag, "constraint_name", None)
    if constraint_name:
        return constraint_name == PAGE_VIEW_UNIQUE_CONSTRAINT

    message = str(orig)
    if PAGE_VIEW_UNIQUE_CONSTRAINT in message:
        return True
    # SQLite: "UNIQUE constraint failed: page_views.url, page_views.session_id"
    return (
        "UNIQUE constraint failed" in message
        and "page_views.url" in message
        and "page_views.session_id" in message
    )


def _insert_catching_duplicate(db: Session, values: dict) -> bool:
    try:
        db.add(PageView(**values))
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if not is_duplicate_view_error(e):
            raise
        return False
    return True


def record_view(
    db: Session,
    session_id: str,
    url: str,
    viewed_at: Optional[datetime] = None,
) -> RecordResult:
    """
    Registra la vista de url por session_id si es la primera vez.

    Idempotente: llamarlo N veces con el mismo par deja el mismo estado que una.
    El duplicado es el caso normal de un visitante que vuelve y no se reporta como error.
    """
    values = {
        "url": normalize_url(url),
        "session_id": session_id,
        "viewed_at": viewed_at or utcnow(),
    }

    with storage_guard(db, "record_view"):
        stmt = _conflict_free_insert(db, values)
        if stmt is None:
            recorded = _insert_catching_duplicate(db, values)
        else:
            result = db.execute(stmt)
            db.commit()
            recorded = result.rowcount == 1

    if recorded:
        logger.info(f"Nueva vista única: {values['url']} ({mask_session_id(session_id)})")
    else:
        logger.debug(f"Vista ya registrada: {values['url']} ({mask_session_id(session_id)})")

    return RecordResult(recorded=recorded)


# ============================================================================
# AGREGACIÓN
# ============================================================================

def count_unique_views(db: Session, url: str) -> int:
    """Cantidad de sesiones distintas que vieron url (una fila por sesión)."""
    with storage_guard(db, "count_unique_views"):
        count = db.query(func.count(PageView.id)).filter(
            PageView.url == normalize_url(url)
        ).scalar()
    return count or 0


def list_all_view_counts(db: Session) -> List[UrlViewCount]:
    """
    Todas las URLs con al menos una vista, ordenadas por vistas únicas desc.
    Los empates se ordenan por URL ascendente para que el resultado sea reproducible.
    """
    unique_views = func.count(PageView.id).label("unique_views")

    with storage_guard(db, "list_all_view_counts"):
        rows = (
            db.query(PageView.url, unique_views)
            .group_by(PageView.url)
            .order_by(desc(unique_views), PageView.url.asc())
            .all()
        )

    return [UrlViewCount(url=row.url, unique_views=row.unique_views) for row in rows]


def get_view_details(db: Session, url: str, limit: Optional[int] = None) -> ViewDetails:
    """
    Conteo de vistas únicas de url y sus vistas más recientes (más nueva primero).
    El id de sesión se enmascara a 8 caracteres + '...'.
    """
    url = normalize_url(url)
    limit = limit if limit is not None else get_settings().recent_views_limit

    unique_views = count_unique_views(db, url)

    with storage_guard(db, "get_view_details"):
        rows = (
            db.query(PageView.viewed_at, PageView.session_id)
            .filter(PageView.url == url)
            .order_by(PageView.viewed_at.desc(), PageView.id.desc())
            .limit(limit)
            .all()
        )

    recent_views = [
        RecentView(
            viewed_at=row.viewed_at.replace(tzinfo=timezone.utc),
            session_id_masked=mask_session_id(row.session_id),
        )
        for row in rows
    ]

    return ViewDetails(url=url, unique_views=unique_views, recent_views=recent_views)
