"""
Store de sesiones anónimas.
Emite ids opacos con 128 bits de entropía y expiración absoluta de 30 días.
"""
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session

from ..config import get_settings
from ..exceptions import storage_guard
from ..models.visitor_session import VisitorSession
from ..schemas.views_schema import ResolvedSession
from ..utils import utcnow, mask_session_id

logger = logging.getLogger(__name__)

SESSION_ID_BYTES = 16
MAX_SESSION_ID_LENGTH = 64


def generate_session_id() -> str:
    """32 caracteres hex (128 bits de secrets)."""
    return secrets.token_hex(SESSION_ID_BYTES)


def is_session_valid(session: Optional[VisitorSession], now: datetime) -> bool:
    """Una sesión es válida solo si expires_at es estrictamente posterior a now."""
    return session is not None and session.expires_at > now


def create_session(db: Session, now: Optional[datetime] = None, commit: bool = True) -> str:
    """
    Persiste una sesión nueva y devuelve su id.
    Con commit=False solo se hace flush: la sesión se confirma junto con la
    siguiente escritura del llamador (o se descarta con su rollback).
    """
    now = now or utcnow()
    session_id = generate_session_id()
    ttl = timedelta(days=get_settings().session_ttl_days)

    with storage_guard(db, "create_session"):
        db.add(VisitorSession(id=session_id, created_at=now, expires_at=now + ttl))
        if commit:
            db.commit()
        else:
            db.flush()

    logger.info(f"Nueva sesión creada: {mask_session_id(session_id)}")
    return session_id


def resolve_session(
    db: Session,
    presented_token: Optional[str],
    now: Optional[datetime] = None,
    commit: bool = True,
) -> ResolvedSession:
    """
    Devuelve la sesión a usar para la petición.

    - Token válido: se devuelve tal cual, sin escrituras (is_new=False).
    - Sin token, desconocido o expirado: se crea una sesión nueva (is_new=True)
      y el llamador debe enviar la cookie. Con commit=False la sesión queda
      pendiente en la transacción de db.
    """
    now = now or utcnow()
    token = (presented_token or "").strip()

    if token and len(token) <= MAX_SESSION_ID_LENGTH:
        with storage_guard(db, "resolve_session"):
            existing = db.get(VisitorSession, token)

        if is_session_valid(existing, now):
            return ResolvedSession(session_id=token, is_new=False)

        if existing is not None:
            logger.debug(f"Sesión expirada: {mask_session_id(token)}")

    return ResolvedSession(session_id=create_session(db, now=now, commit=commit), is_new=True)


def purge_expired_sessions(db: Session, now: Optional[datetime] = None) -> int:
    """
    Borra las sesiones con expires_at <= now y devuelve cuántas se eliminaron.
    Las page_views no se tocan: los conteos históricos no dependen de la sesión.
    """
    now = now or utcnow()
    with storage_guard(db, "purge_expired_sessions"):
        result = db.execute(
            delete(VisitorSession).where(VisitorSession.expires_at <= now)
        )
        db.commit()

    deleted = result.rowcount or 0
    logger.info(f"Sesiones expiradas eliminadas: {deleted}")
    return deleted
