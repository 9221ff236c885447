"""
Libro de contadores del sitio: visitas totales y visitantes únicos.

Hay dos implementaciones intercambiables que se eligen una sola vez al
iniciar, según exista o no DATABASE_URL:

- MemoryStatsLedger: contadores en memoria del proceso, protegidos con un lock.
- SqlStatsLedger: tablas visit_stats + visitors en la base de datos.

En ambos casos registrar una visita es una única operación atómica:
"insertar el visitante si no existe" + "sumar a los contadores". Dos
requests simultáneos con el mismo visitante nuevo suman 2 visitas y
1 solo visitante único.
"""
import logging
import threading
from abc import ABC, abstractmethod
from typing import NamedTuple

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..database import create_db_engine, init_tables, write_engine

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """El almacenamiento no respondió o la transacción falló."""


class VisitResult(NamedTuple):
    total_visits: int
    unique_visitors: int
    is_new: bool


class StatsSnapshot(NamedTuple):
    total_visits: int
    unique_visitors: int


class StatsLedger(ABC):
    backend_name = "base"

    def init_storage(self) -> None:
        """Prepara el almacenamiento (tablas, fila inicial). Por defecto no hace nada."""

    @abstractmethod
    def knows_visitor(self, visitor_id: str) -> bool:
        ...

    @abstractmethod
    def record_visit(self, visitor_id: str) -> VisitResult:
        ...

    @abstractmethod
    def read_stats(self) -> StatsSnapshot:
        ...

    def close(self) -> None:
        pass


class MemoryStatsLedger(StatsLedger):
    """
    Contadores en memoria. Se pierden al reiniciar el proceso: una cookie
    emitida antes del reinicio vuelve a contar como visitante único.
    """

    backend_name = "memory"

    def __init__(self):
        self._lock = threading.Lock()
        self._total_visits = 0
        self._unique_visitors = 0
        self._seen_visitor_ids: set[str] = set()

    def knows_visitor(self, visitor_id: str) -> bool:
        with self._lock:
            return visitor_id in self._seen_visitor_ids

    def record_visit(self, visitor_id: str) -> VisitResult:
        with self._lock:
            is_new = visitor_id not in self._seen_visitor_ids
            if is_new:
                self._seen_visitor_ids.add(visitor_id)
                self._unique_visitors += 1
            self._total_visits += 1
            return VisitResult(self._total_visits, self._unique_visitors, is_new)

    def read_stats(self) -> StatsSnapshot:
        with self._lock:
            return StatsSnapshot(self._total_visits, self._unique_visitors)


# PostgreSQL: insert + update condicional en un solo round-trip.
# Si el INSERT no crea fila (visitante ya existente), COUNT(*) de ins es 0.
_PG_RECORD_VISIT = text("""
    WITH ins AS (
        INSERT INTO visitors (id)
        VALUES (:visitor_id)
        ON CONFLICT DO NOTHING
        RETURNING 1
    ),
    upd AS (
        UPDATE visit_stats
        SET total_visits = total_visits + 1,
            unique_visitors = unique_visitors + (SELECT COUNT(*) FROM ins)
        WHERE id = 1
        RETURNING total_visits, unique_visitors
    )
    SELECT
        total_visits,
        unique_visitors,
        (SELECT COUNT(*) FROM ins) AS new_visitor
    FROM upd
""")

_INSERT_VISITOR = text("INSERT INTO visitors (id) VALUES (:visitor_id) ON CONFLICT DO NOTHING")

_INCREMENT_STATS = text("""
    UPDATE visit_stats
    SET total_visits = total_visits + 1,
        unique_visitors = unique_visitors + :unique_increment
    WHERE id = 1
""")

_SELECT_STATS = text("SELECT total_visits, unique_visitors FROM visit_stats WHERE id = 1")

_SELECT_VISITOR = text("SELECT 1 FROM visitors WHERE id = :visitor_id")


class SqlStatsLedger(StatsLedger):
    """
    Contadores persistentes en base de datos relacional.

    La atomicidad la garantiza la transacción: en PostgreSQL el INSERT en
    conflicto espera al commit de la otra transacción y el UPDATE bloquea la
    fila de contadores; en SQLite la transacción de escritura abre con
    BEGIN IMMEDIATE y las lecturas no esperan a las escrituras en curso.
    """

    backend_name = "sql"

    def __init__(self, engine: Engine):
        self.engine = engine
        self.writer = write_engine(engine)
        self.is_postgres = engine.dialect.name == "postgresql"

    def init_storage(self) -> None:
        try:
            init_tables(self.engine)
        except SQLAlchemyError as e:
            raise PersistenceError(f"No se pudieron crear las tablas: {e}") from e

    def knows_visitor(self, visitor_id: str) -> bool:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_SELECT_VISITOR, {"visitor_id": visitor_id}).first()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Error al consultar visitante: {e}") from e
        return row is not None

    def record_visit(self, visitor_id: str) -> VisitResult:
        try:
            with self.writer.begin() as conn:
                if self.is_postgres:
                    row = conn.execute(_PG_RECORD_VISIT, {"visitor_id": visitor_id}).first()
                    if row is None:
                        raise PersistenceError("La fila de visit_stats (id=1) no existe")
                    return VisitResult(
                        int(row.total_visits),
                        int(row.unique_visitors),
                        int(row.new_visitor) == 1,
                    )

                inserted = conn.execute(_INSERT_VISITOR, {"visitor_id": visitor_id}).rowcount
                is_new = inserted == 1
                updated = conn.execute(
                    _INCREMENT_STATS, {"unique_increment": 1 if is_new else 0}
                ).rowcount
                if updated != 1:
                    raise PersistenceError("La fila de visit_stats (id=1) no existe")
                row = conn.execute(_SELECT_STATS).one()
                return VisitResult(int(row.total_visits), int(row.unique_visitors), is_new)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Error al registrar visita: {e}") from e

    def read_stats(self) -> StatsSnapshot:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_SELECT_STATS).first()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Error al leer estadísticas: {e}") from e
        if row is None:
            return StatsSnapshot(0, 0)
        return StatsSnapshot(int(row.total_visits), int(row.unique_visitors))

    def close(self) -> None:
        self.engine.dispose()


def build_ledger(settings) -> StatsLedger:
    """Elige el backend según la configuración. Se llama una sola vez al iniciar."""
    if not settings.database_url:
        logger.warning("⚠️ DATABASE_URL no configurada, usando contadores en memoria")
        return MemoryStatsLedger()

    engine = create_db_engine(
        settings.database_url,
        timeout_seconds=settings.database_timeout_seconds,
        pool_size=settings.database_pool_size,
    )
    if settings.database_ssl_required:
        logger.info("🔒 Conexión a la base de datos con SSL (sin verificar certificado)")
    logger.info("[INFO] Usando base de datos para las estadísticas de visitas")
    return SqlStatsLedger(engine)
