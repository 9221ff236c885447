# Configuración de base de datos usando SQLAlchemy.
#
# ESTRATEGIA DE PERSISTENCIA:
# - SIN DATABASE_URL: los contadores viven en memoria (se pierden al reiniciar)
# - CON DATABASE_URL (PostgreSQL): tablas visit_stats + visitors, persistentes
# - CON DATABASE_URL sqlite:///...: útil para desarrollo local y tests
#
# Si la URL contiene sslmode=require la conexión va cifrada pero sin verificar
# el certificado del servidor, aunque el host tenga ~/.postgresql/root.crt.

import logging

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

logger = logging.getLogger(__name__)

Base = declarative_base()

# Opción de ejecución que marca las conexiones de escritura en SQLite
SQLITE_IMMEDIATE = "sqlite_immediate"

# Ruta que nunca existe: libpq no encuentra CA raíz y no verifica el certificado
NO_ROOT_CERT = "/nonexistent/visit-counter-root.crt"


def normalize_database_url(url: str) -> str:
    # Heroku/Railway todavía entregan postgres://, SQLAlchemy solo acepta postgresql://
    if url.startswith("postgres://"):
        return "postgresql://" + url[len("postgres://"):]
    return url


def _use_immediate_transactions(engine: Engine) -> None:
    # SQLite: las escrituras toman el lock de escritura al abrir la transacción
    # (BEGIN IMMEDIATE); las lecturas usan BEGIN diferido y no bloquean.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        if conn.get_execution_options().get(SQLITE_IMMEDIATE):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def write_engine(engine: Engine) -> Engine:
    """Engine para transacciones de escritura (en SQLite abren con BEGIN IMMEDIATE)."""
    return engine.execution_options(**{SQLITE_IMMEDIATE: True})


def postgres_connect_args(url: str, timeout_seconds: float) -> dict:
    """
    Argumentos de conexión para psycopg2.

    Con sslmode=require la conexión va cifrada sin verificar el certificado.
    libpq sí lo verifica (como verify-ca) si existe ~/.postgresql/root.crt,
    así que se apunta sslrootcert a un archivo inexistente para que el modo
    siga siendo "require" en cualquier host.
    """
    connect_args = {
        "connect_timeout": max(1, int(timeout_seconds)),
        "options": f"-c statement_timeout={int(timeout_seconds * 1000)}",
    }
    if "sslmode=require" in url and "sslrootcert=" not in url:
        connect_args["sslmode"] = "require"
        connect_args["sslrootcert"] = NO_ROOT_CERT
    return connect_args


def create_db_engine(url: str, timeout_seconds: float = 5.0, pool_size: int = 5) -> Engine:
    """
    Crea el engine de SQLAlchemy aplicando timeouts para que ninguna consulta
    quede colgada indefinidamente.
    """
    url = normalize_database_url(url)
    is_sqlite = url.startswith("sqlite")

    connect_args = {}
    engine_kwargs = {"pool_pre_ping": True}

    if is_sqlite:
        connect_args = {"check_same_thread": False, "timeout": timeout_seconds}
    else:
        connect_args = postgres_connect_args(url, timeout_seconds)
        engine_kwargs["pool_size"] = pool_size
        engine_kwargs["pool_timeout"] = timeout_seconds

    engine = create_engine(url, connect_args=connect_args, **engine_kwargs)
    if is_sqlite:
        _use_immediate_transactions(engine)
    logger.info(f"[DB] Engine creado para dialecto '{engine.dialect.name}'")
    return engine


def init_tables(engine: Engine) -> None:
    """
    Crea las tablas visit_stats y visitors si no existen y asegura que la
    fila única de contadores (id=1) esté presente.
    """
    # Importar los modelos para que SQLAlchemy los registre antes de create_all()
    from .models.visit_stats import VisitStats  # noqa: F401
    from .models.visitor import Visitor  # noqa: F401

    engine = write_engine(engine)

    logger.info(f"Creando tablas si no existen: {', '.join(Base.metadata.tables.keys())}")
    Base.metadata.create_all(bind=engine)

    with engine.begin() as conn:
        conn.execute(text(
            "INSERT INTO visit_stats (id, total_visits, unique_visitors) "
            "VALUES (1, 0, 0) "
            "ON CONFLICT (id) DO NOTHING"
        ))
    logger.info("✅ Tablas de estadísticas verificadas")
