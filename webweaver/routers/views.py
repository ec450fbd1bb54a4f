from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from ..config import get_settings
from ..database import get_db
from ..schemas.views_schema import ResolvedSession, ViewDetails, ViewsSummary
from ..services.tracking_service import track_and_maybe_report

router = APIRouter(prefix="/views", tags=["views"])

SECONDS_PER_DAY = 24 * 60 * 60


# ============================================================================
# DEPENDENCIAS - Cookie de sesión
# ============================================================================

def get_session_token(request: Request) -> Optional[str]:
    """
    Obtiene el session_id de la cookie.
    Retorna None si el navegador no envió cookie (primera visita).
    """
    return request.cookies.get(get_settings().session_cookie_name) or None


def set_session_cookie(response: Response, session: ResolvedSession) -> None:
    """Envía Set-Cookie solo si la sesión se acaba de crear."""
    if not session.is_new:
        return
    settings = get_settings()
    response.set_cookie(
        key=settings.session_cookie_name,
        value=session.session_id,
        max_age=settings.session_ttl_days * SECONDS_PER_DAY,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )


# ============================================================================
# ENDPOINTS
# ============================================================================

@router.get("", response_model=ViewDetails | ViewsSummary)
def get_views_json(
    request: Request,
    response: Response,
    url: Optional[str] = Query(None, description="URL de la que se quiere el detalle"),
    session_token: Optional[str] = Depends(get_session_token),
    db: Session = Depends(get_db),
):
    """
    Vistas únicas en JSON.
    - Sin url: cuenta la vista de este endpoint y devuelve {totalUrls, views}.
    - Con url: cuenta la vista de esa url y devuelve {url, uniqueViews, recentViews}.
    """
    target_url = url or request.url.path
    outcome = track_and_maybe_report(db, session_token, target_url, detail_url=url)
    set_session_cookie(response, outcome.session)
    return outcome.report
