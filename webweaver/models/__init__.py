# Importar todos los modelos para que create_all() los registre
from .visitor_session import VisitorSession
from .page_view import PageView, PAGE_VIEW_UNIQUE_CONSTRAINT

__all__ = [
    "VisitorSession",
    "PageView",
    "PAGE_VIEW_UNIQUE_CONSTRAINT",
]
