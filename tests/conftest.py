import pytest

from src.config import Settings
from src.database import create_db_engine
from src.main import create_app
from src.services.ledger import MemoryStatsLedger, PersistenceError, SqlStatsLedger


class FlakyLedger(MemoryStatsLedger):
    """Ledger en memoria que puede simular una base de datos caída."""

    def __init__(self):
        super().__init__()
        self.fail = False

    def record_visit(self, visitor_id):
        if self.fail:
            raise PersistenceError("base de datos no disponible")
        return super().record_visit(visitor_id)

    def read_stats(self):
        if self.fail:
            raise PersistenceError("base de datos no disponible")
        return super().read_stats()


@pytest.fixture
def sqlite_url(tmp_path):
    return f"sqlite:///{tmp_path / 'stats.db'}"


@pytest.fixture
def sql_ledger(sqlite_url):
    ledger = SqlStatsLedger(create_db_engine(sqlite_url))
    ledger.init_storage()
    yield ledger
    ledger.close()


@pytest.fixture
def broken_sql_ledger(tmp_path):
    # SQLite no puede abrir un archivo dentro de un directorio inexistente
    url = f"sqlite:///{tmp_path / 'no-existe' / 'stats.db'}"
    ledger = SqlStatsLedger(create_db_engine(url, timeout_seconds=0.5))
    yield ledger
    ledger.close()


@pytest.fixture(params=["memory", "sql"])
def ledger(request, tmp_path):
    if request.param == "memory":
        yield MemoryStatsLedger()
        return
    ledger = SqlStatsLedger(create_db_engine(f"sqlite:///{tmp_path / 'stats.db'}"))
    ledger.init_storage()
    yield ledger
    ledger.close()


@pytest.fixture
def settings(monkeypatch, tmp_path):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("ALLOWED_ORIGIN", "https://example.com, https://blog.example.com")
    monkeypatch.setenv("STATIC_DIR", str(tmp_path / "public"))
    return Settings()


@pytest.fixture
def app_factory(settings):
    def factory(ledger=None):
        return create_app(settings=settings, ledger=ledger or MemoryStatsLedger())
    return factory
