"""Schema migrations agree with the ORM models."""

import importlib.util
from pathlib import Path

from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect

from userhub.kernel.models import SoftDeleteMixin, TimestampMixin, UserRecord

VERSIONS_DIR = Path(__file__).resolve().parents[2] / "alembic" / "versions"


def _load(filename: str):
    spec = importlib.util.spec_from_file_location(filename[:-3], VERSIONS_DIR / filename)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _apply(conn, step) -> None:
    with Operations.context(MigrationContext.configure(conn)):
        step()


def test_users_migration_matches_model():
    migration = _load("20261018_0001_users.py")
    engine = create_engine("sqlite://")

    with engine.begin() as conn:
        _apply(conn, migration.upgrade)
        inspector = inspect(conn)

        columns = {c["name"]: c for c in inspector.get_columns("users")}
        assert set(columns) == {c.name for c in UserRecord.__table__.columns}
        assert columns["name"]["nullable"] is True
        assert columns["email"]["nullable"] is False

        unique = {ix["name"] for ix in inspector.get_indexes("users") if ix["unique"]}
        assert unique == {"ix_users_email"}

        _apply(conn, migration.downgrade)
        assert not inspect(conn).has_table("users")


def test_record_mixins_only_map_columns():
    """Deleted state is read from the domain entity, never from the row."""
    for mixin in (TimestampMixin, SoftDeleteMixin):
        assert not [name for name, value in vars(mixin).items() if isinstance(value, property)]
