"""
Tests for the Alembic schema migration.
"""

import importlib.util
from pathlib import Path

import pytest
import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations

from namaste_bridge.db import models  # noqa: F401
from namaste_bridge.db.session import Base

MIGRATION = Path(__file__).parent.parent / "alembic" / "versions" / "001_initial_schema.py"


@pytest.fixture
def migration():
    spec = importlib.util.spec_from_file_location("initial_schema", MIGRATION)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def engine(tmp_path):
    engine = sa.create_engine(f"sqlite:///{tmp_path / 'migration.db'}")
    yield engine
    engine.dispose()


def _run(engine, step):
    with engine.begin() as conn:
        with Operations.context(MigrationContext.configure(conn)):
            step()


class TestInitialSchema:
    """Test that the migration builds the schema the ORM expects."""

    def test_upgrade_matches_models(self, engine, migration):
        _run(engine, migration.upgrade)

        inspector = sa.inspect(engine)
        assert set(inspector.get_table_names()) == set(Base.metadata.tables)
        for name, table in Base.metadata.tables.items():
            columns = {c["name"] for c in inspector.get_columns(name)}
            assert columns == {c.name for c in table.columns}, name

    def test_mapping_pair_is_unique(self, engine, migration):
        _run(engine, migration.upgrade)

        constraints = sa.inspect(engine).get_unique_constraints("terminology_mappings")
        assert [c["column_names"] for c in constraints] == [["ayush_code", "icd11_code"]]

    def test_downgrade_drops_everything(self, engine, migration):
        _run(engine, migration.upgrade)
        _run(engine, migration.downgrade)

        assert sa.inspect(engine).get_table_names() == []
