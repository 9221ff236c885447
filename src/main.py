import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request, Response
from fastapi.staticfiles import StaticFiles

from .config import BACKEND_DIR, Settings, get_settings, clear_settings_cache
from .routers import visits
from .services.ledger import PersistenceError, StatsLedger, build_ledger

# Cargar variables de entorno desde .env (solo en desarrollo local)
env_path = BACKEND_DIR / ".env"
loaded = load_dotenv(dotenv_path=env_path)

# Limpiar cache de settings para asegurar que se recarguen las variables
clear_settings_cache()

# Configurar logging
logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)

if loaded:
    logger.info(f"Variables de entorno cargadas desde: {env_path}")

CORS_ALLOW_METHODS = "GET,POST,OPTIONS"
CORS_ALLOW_HEADERS = "Content-Type"


def install_cors(app: FastAPI, allowed_origins: list[str]) -> None:
    """
    CORS básico para desplegar el sitio en otro dominio.
    Solo los orígenes de ALLOWED_ORIGIN reciben Access-Control-Allow-Origin;
    cualquier OPTIONS se responde con 204 sin llegar a los routers.
    """

    @app.middleware("http")
    async def cors_middleware(request: Request, call_next):
        if request.method == "OPTIONS":
            response = Response(status_code=204)
            response.headers["Access-Control-Allow-Methods"] = CORS_ALLOW_METHODS
            response.headers["Access-Control-Allow-Headers"] = CORS_ALLOW_HEADERS
        else:
            response = await call_next(request)

        origin = request.headers.get("origin")
        if origin and origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Vary"] = "Origin"
        return response


def create_app(settings: Optional[Settings] = None, ledger: Optional[StatsLedger] = None) -> FastAPI:
    settings = settings or get_settings()
    ledger = ledger or build_ledger(settings)

    # Crear tablas al iniciar (no bloquear el inicio si falla)
    try:
        ledger.init_storage()
    except PersistenceError as e:
        logger.error(f"❌ Error al crear tablas al iniciar: {e}", exc_info=True)
        logger.warning("⚠️ El servidor continuará iniciando, pero las estadísticas pueden fallar")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        logger.info("Cerrando conexiones del ledger...")
        app.state.ledger.close()

    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
    app.state.ledger = ledger
    logger.info(f"📊 Backend de estadísticas: {ledger.backend_name}")

    allowed_origins = settings.allowed_origins
    logger.info(f"🌐 Orígenes CORS permitidos: {allowed_origins}")
    install_cors(app, allowed_origins)

    app.include_router(visits.router, prefix="/api")

    # Servir el sitio estático (debe ir después de /api para no taparlo)
    static_dir = settings.static_dir
    if static_dir.is_dir():
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")
        logger.info(f"📁 Sirviendo sitio estático desde: {static_dir}")
    else:
        logger.warning(f"⚠️ No existe el directorio estático {static_dir}, no se servirán archivos")

    return app


app = create_app()
