from sqlalchemy import Column, String, DateTime

from ..database import Base
from ..utils import utcnow


class VisitorSession(Base):
    """
    Sesión anónima de un visitante.
    El id viaja en la cookie session_id; la expiración es absoluta (no se renueva).
    """
    __tablename__ = "visitor_sessions"

    id = Column(String(64), primary_key=True)
    expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
