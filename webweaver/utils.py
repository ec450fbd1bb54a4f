from datetime import datetime, timezone

from .config import get_settings

MASK_VISIBLE_CHARS = 8
MASK_SUFFIX = "..."


def utcnow() -> datetime:
    """
    Hora actual en UTC sin tzinfo.
    Las columnas DateTime se guardan naive (SQLite no conserva la zona horaria).
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_url(raw: str | None) -> str:
    """
    Normaliza la URL usada como clave de page_views.

    Ejemplos:
    - "  /blog  " -> "/blog"
    - "" -> "/"
    - None -> "/"
    """
    url = (raw or "").strip()
    if not url:
        return "/"
    return url[: get_settings().max_url_length]


def mask_session_id(session_id: str) -> str:
    """Primeros 8 caracteres del id seguidos de '...' (nunca el id completo)."""
    return session_id[:MASK_VISIBLE_CHARS] + MASK_SUFFIX
