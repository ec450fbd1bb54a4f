"""
Páginas HTML de estadísticas. Cada visita a /views cuenta como vista de "/views".
"""
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse
from jinja2 import Environment, FileSystemLoader, select_autoescape
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas.views_schema import ViewDetails
from ..services.tracking_service import track_and_maybe_report
from .views import get_session_token, set_session_cookie

router = APIRouter(tags=["pages"])

PAGE_URL = "/views"

TEMPLATES_DIR = Path(__file__).parent.parent / "templates"
templates = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
)
templates.filters["datetime"] = lambda dt: dt.strftime("%Y-%m-%d %H:%M:%S UTC")


@router.get(PAGE_URL, response_class=HTMLResponse)
def get_views_html(
    url: Optional[str] = Query(None),
    session_token: Optional[str] = Depends(get_session_token),
    db: Session = Depends(get_db),
):
    """Resumen de todas las URLs, o detalle de una si viene ?url=."""
    outcome = track_and_maybe_report(db, session_token, PAGE_URL, detail_url=url)

    if isinstance(outcome.report, ViewDetails):
        html = templates.get_template("views_detail.html").render(details=outcome.report)
    else:
        html = templates.get_template("views_summary.html").render(summary=outcome.report)

    response = HTMLResponse(content=html)
    set_session_cookie(response, outcome.session)
    return response
