"""
Fachada de ingesta: único punto donde se encadenan resolución de sesión,
registro de la vista y lectura de agregados.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..schemas.views_schema import TrackingOutcome, ViewsSummary
from .session_service import resolve_session
from .views_service import record_view, get_view_details, list_all_view_counts

logger = logging.getLogger(__name__)


def build_views_summary(db: Session) -> ViewsSummary:
    views = list_all_view_counts(db)
    return ViewsSummary(total_urls=len(views), views=views)


def track_and_maybe_report(
    db: Session,
    presented_token: Optional[str],
    target_url: str,
    detail_url: Optional[str] = None,
) -> TrackingOutcome:
    """
    Resuelve la sesión, registra la vista de target_url y devuelve el reporte.

    Args:
        presented_token: valor de la cookie session_id (puede ser None)
        target_url: URL que cuenta como vista en esta petición
        detail_url: si viene, se devuelve el detalle de esa URL; si no, el resumen global

    Returns:
        TrackingOutcome con la sesión resuelta (is_new => enviar cookie) y el reporte.
        Si falla el almacenamiento se propaga StorageUnavailableError: no hay reporte parcial
        y, si la escritura de la vista falla, tampoco queda la sesión nueva.
    """
    # La sesión nueva se confirma en el mismo commit que la vista
    session = resolve_session(db, presented_token, commit=False)
    result = record_view(db, session.session_id, target_url)

    if detail_url:
        report = get_view_details(db, detail_url)
    else:
        report = build_views_summary(db)

    return TrackingOutcome(session=session, recorded=result.recorded, report=report)
