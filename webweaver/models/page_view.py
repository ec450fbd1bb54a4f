from sqlalchemy import Column, Integer, String, DateTime, Index, UniqueConstraint

from ..database import Base
from ..utils import utcnow

PAGE_VIEW_UNIQUE_CONSTRAINT = "uq_page_views_url_session"


class PageView(Base):
    """
    Una vista única: "esta sesión vio esta URL en este momento".
    Como máximo una fila por (url, session_id); las filas nunca se modifican ni se borran.
    """
    __tablename__ = "page_views"

    id = Column(Integer, primary_key=True, index=True)
    url = Column(String(2048), nullable=False, index=True)

    # Referencia sin FK: las vistas sobreviven a la limpieza de sesiones expiradas
    session_id = Column(String(64), nullable=False, index=True)

    viewed_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("url", "session_id", name=PAGE_VIEW_UNIQUE_CONSTRAINT),
        Index("ix_page_views_url_viewed_at", "url", "viewed_at"),
    )
