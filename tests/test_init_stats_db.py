from pathlib import Path
import sys

SCRIPTS = Path(__file__).resolve().parents[1] / "scripts"
if str(SCRIPTS) not in sys.path:
    sys.path.insert(0, str(SCRIPTS))

import init_stats_db  # noqa: E402


def test_creates_tables_and_prints_totals(sqlite_url, capsys):
    assert init_stats_db.main([sqlite_url]) == 0

    out = capsys.readouterr().out
    assert "Visitas totales: 0" in out
    assert "Visitantes únicos: 0" in out


def test_without_database_url_exits_with_error(monkeypatch, capsys):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setattr(init_stats_db, "load_dotenv", lambda **kwargs: False)

    assert init_stats_db.main([]) == 1
    assert "DATABASE_URL" in capsys.readouterr().out


def test_unreachable_database_exits_with_error(tmp_path, capsys):
    url = f"sqlite:///{tmp_path / 'no-existe' / 'stats.db'}"

    assert init_stats_db.main([url]) == 1
    assert "No se pudo inicializar" in capsys.readouterr().out
