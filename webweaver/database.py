# Configuración de base de datos usando SQLAlchemy.
#
# ESTRATEGIA DE BASE DE DATOS:
# - DESARROLLO LOCAL: SQLite local (webweaver.db) si DATABASE_URL no está configurada
# - PRODUCCIÓN: PostgreSQL (u otra) tomada de DATABASE_URL
#
# La unicidad (url, session_id) de page_views la garantiza la base de datos.
# SQLite y PostgreSQL usan INSERT ... ON CONFLICT DO NOTHING; otros motores
# capturan el IntegrityError de esa restricción (ver views_service.dedup_strategy).

import os
from pathlib import Path
from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

# Cargar variables de entorno desde .env (solo en desarrollo local)
backend_dir = Path(__file__).parent.parent
env_path = backend_dir / ".env"
load_dotenv(dotenv_path=env_path)

env_database_url = os.getenv("DATABASE_URL", "").strip()

IS_EXTERNAL_DB = bool(env_database_url) and not env_database_url.startswith("sqlite")

if env_database_url:
    DATABASE_URL = env_database_url
else:
    DATABASE_URL = "sqlite:///./webweaver.db"

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    DATABASE_URL,
    connect_args=connect_args,
    pool_pre_ping=IS_EXTERNAL_DB,
)
print(f"[INFO] Base de datos: {engine.dialect.name} ({engine.url.render_as_string(hide_password=True)})")

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """
    Dependencia para inyectar la sesión de DB en los endpoints de FastAPI.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
