import importlib
import sys
from pathlib import Path

import pytest

# Ensure the package under test is importable without installation
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from connectin_rec.models import Movie  # noqa: E402


@pytest.fixture
def fresh_config(monkeypatch, tmp_path):
    """
    Reload config with a temporary database path to keep tests isolated.
    """
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("CONNECTIN_DB", str(db_path))
    import connectin_rec.config as config

    importlib.reload(config)
    return config


@pytest.fixture
def fresh_db(monkeypatch, tmp_path):
    """
    Reload config/database modules with a temp DB and cleanly close the pool after use.
    """
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("CONNECTIN_DB", str(db_path))

    import connectin_rec.config as config
    import connectin_rec.database as database

    importlib.reload(config)
    importlib.reload(database)

    yield database
    database.close_pool()


@pytest.fixture
def fresh_cli(fresh_db):
    """
    Reload the CLI so its store helpers point at the temp database.
    """
    import connectin_rec.cli as cli

    importlib.reload(cli)
    fresh_db.init_db()
    return cli, fresh_db


@pytest.fixture
def make_movie():
    def _make(movie_id, genres=(), popularity=0.0, title=None):
        return Movie(
            id=movie_id,
            title=title or f"Movie {movie_id}",
            genre_ids=genres,
            popularity=popularity,
        )

    return _make
