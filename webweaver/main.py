import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import inspect
import uvicorn

from .routers import views, pages
from .config import get_settings, clear_settings_cache
from .database import Base, engine
from .exceptions import StorageUnavailableError
from .models.page_view import PAGE_VIEW_UNIQUE_CONSTRAINT
from .schemas.views_schema import HealthOut
from .services.views_service import dedup_strategy

# Configurar logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Cargar variables de entorno desde .env (solo en desarrollo local)
backend_dir = Path(__file__).parent.parent
env_path = backend_dir / ".env"
loaded = load_dotenv(dotenv_path=env_path)
if loaded:
    logger.info(f"Variables de entorno cargadas desde: {env_path}")
else:
    logger.info(f"Sin archivo .env en {env_path}, se usan variables del entorno")

# Limpiar cache de settings para asegurar que se recarguen las variables
clear_settings_cache()

# Importar todos los modelos para que SQLAlchemy los registre antes de create_all()
from .models.visitor_session import VisitorSession  # noqa: F401,E402
from .models.page_view import PageView  # noqa: F401,E402

app_settings = get_settings()

app = FastAPI(title=app_settings.app_name, version="0.1.0", redirect_slashes=False)


def build_allowed_origins(cors_origin_env: str) -> list[str]:
    """
    Lista de orígenes CORS: localhost más los de CORS_ORIGIN (separados por coma).
    No se usa "*" porque la cookie de sesión requiere allow_credentials.
    """
    allowed_origins = [
        "http://localhost:3000",
        "http://localhost:5000",
    ]
    for origin in cors_origin_env.split(","):
        origin = origin.strip()
        if origin and origin not in allowed_origins:
            allowed_origins.append(origin)
    return allowed_origins


allowed_origins = build_allowed_origins(app_settings.cors_origin)
logger.info(f"🌐 Orígenes CORS permitidos: {allowed_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)


@app.exception_handler(StorageUnavailableError)
async def storage_unavailable_handler(request: Request, exc: StorageUnavailableError):
    logger.error(f"❌ {exc} en {request.url.path}")
    return JSONResponse(status_code=503, content={"detail": "Almacenamiento no disponible"})


def create_tables():
    """Crea las tablas en la base de datos si no existen."""
    try:
        logger.info("Creando tablas en la base de datos...")

        expected_tables = list(Base.metadata.tables.keys())
        logger.info(f"Tablas esperadas: {', '.join(expected_tables)}")

        Base.metadata.create_all(bind=engine)

        inspector = inspect(engine)
        existing_tables = inspector.get_table_names()
        logger.info(f"Tablas existentes en la BD: {', '.join(existing_tables) if existing_tables else '(ninguna)'}")

        missing_tables = [t for t in expected_tables if t not in existing_tables]
        if missing_tables:
            logger.warning(f"⚠️  Tablas faltantes: {', '.join(missing_tables)}")
        else:
            logger.info("✅ Todas las tablas fueron creadas/verificadas exitosamente")

    except Exception as e:
        logger.error(f"❌ ERROR al crear tablas: {str(e)}", exc_info=True)
        raise


def log_dedup_strategy(dialect_name: str) -> str:
    """Deja en el log cómo se deduplican las vistas con el motor configurado."""
    strategy = dedup_strategy(dialect_name)
    if strategy == "on_conflict":
        logger.info(f"Deduplicación de vistas con ON CONFLICT DO NOTHING ({dialect_name})")
    else:
        logger.warning(
            f"⚠️ {dialect_name} no soporta ON CONFLICT: deduplicación por IntegrityError "
            f"de {PAGE_VIEW_UNIQUE_CONSTRAINT}"
        )
    return strategy


# Crear tablas al iniciar (no bloquear el inicio si falla)
try:
    create_tables()
except Exception as e:
    logger.error(f"❌ Error al crear tablas al iniciar: {str(e)}", exc_info=True)
    logger.warning("⚠️ El servidor continuará iniciando, pero las vistas no se registrarán hasta que la BD responda")

log_dedup_strategy(engine.dialect.name)

# Include routers
app.include_router(views.router, prefix="/api")
app.include_router(pages.router)


@app.get("/", tags=["root"])  # Simple welcome endpoint
async def root():
    return {"message": "Bienvenido a WebWeaver", "stats": "/views"}


@app.get("/api/health", tags=["health"], response_model=HealthOut)
async def health():
    return HealthOut(status="ok", timestamp=datetime.now(timezone.utc).isoformat())


def run():
    """Servidor de desarrollo; en producción se lanza con `uvicorn webweaver.main:app`."""
    uvicorn.run(
        "webweaver.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "5000")),
    )


if __name__ == "__main__":
    run()
