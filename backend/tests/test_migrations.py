"""
Migration tests.

Verifies:
- `flask db upgrade` builds the full schema on a fresh SQLite file
- The migrated schema carries every model table
"""

import logging.config
from pathlib import Path

import pytest
from flask_migrate import upgrade
from sqlalchemy import inspect

from kelola import create_app
from kelola.extensions import db


MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "migrations"


@pytest.fixture
def file_app(tmp_path, monkeypatch):
    # env.py calls fileConfig(); keep the test run's logging configuration
    monkeypatch.setattr(logging.config, "fileConfig", lambda *args, **kwargs: None)

    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'migrated.sqlite3'}",
    })
    with app.app_context():
        yield app
        db.engine.dispose()


class TestUpgrade:

    def test_upgrade_head_on_empty_database(self, file_app):
        upgrade(directory=str(MIGRATIONS_DIR))

        tables = set(inspect(db.engine).get_table_names())
        assert "alembic_version" in tables
        assert set(db.metadata.tables) <= tables

    def test_upgrade_is_idempotent(self, file_app):
        upgrade(directory=str(MIGRATIONS_DIR))
        upgrade(directory=str(MIGRATIONS_DIR))

        with db.engine.connect() as connection:
            versions = connection.exec_driver_sql("SELECT version_num FROM alembic_version").fetchall()
        assert len(versions) == 1
