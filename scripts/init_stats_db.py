"""
Script para crear las tablas de estadísticas (visit_stats, visitors) y
mostrar los contadores actuales.
Ejecutar: python scripts/init_stats_db.py [DATABASE_URL]
Sin argumento usa la variable de entorno DATABASE_URL (o el .env).
"""
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# Obtener el path del directorio del script y subir un nivel
SCRIPT_DIR = Path(__file__).resolve().parent
BACKEND_DIR = SCRIPT_DIR.parent
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from src.database import create_db_engine  # noqa: E402
from src.services.ledger import PersistenceError, SqlStatsLedger  # noqa: E402


def init_stats_db(database_url: str):
    ledger = SqlStatsLedger(create_db_engine(database_url))
    try:
        ledger.init_storage()
        return ledger.read_stats()
    finally:
        ledger.close()


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    load_dotenv(dotenv_path=BACKEND_DIR / ".env")
    database_url = argv[0] if argv else os.getenv("DATABASE_URL", "").strip()

    if not database_url:
        print("❌ No hay DATABASE_URL configurada (modo en memoria, no hay tablas que crear)")
        return 1

    try:
        stats = init_stats_db(database_url)
    except PersistenceError as e:
        print(f"❌ No se pudo inicializar la base de datos: {e}")
        return 1

    print("✅ Tablas visit_stats y visitors verificadas")
    print(f"   - Visitas totales: {stats.total_visits}")
    print(f"   - Visitantes únicos: {stats.unique_visitors}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
