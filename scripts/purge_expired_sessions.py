"""
Script para eliminar las sesiones expiradas de visitor_sessions.
Las page_views se conservan: los conteos de vistas únicas no cambian.
Ejecutar: python scripts/purge_expired_sessions.py
"""
import logging
import sys

from webweaver.database import SessionLocal
from webweaver.exceptions import StorageUnavailableError
from webweaver.services.session_service import purge_expired_sessions

logging.basicConfig(level=logging.INFO)


def main() -> int:
    db = SessionLocal()
    try:
        deleted = purge_expired_sessions(db)
    except StorageUnavailableError as e:
        print(f"❌ {e}")
        return 1
    finally:
        db.close()

    print(f"✅ {deleted} sesiones expiradas eliminadas")
    return 0


if __name__ == "__main__":
    sys.exit(main())
