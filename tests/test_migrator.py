from unittest.mock import MagicMock

import pytest
from alembic.script import ScriptDirectory
from sqlalchemy.exc import OperationalError

from kvstream.core.exceptions import MigrationError
from kvstream.services.migrator import (
    KeyValueMigrator,
    build_alembic_config,
    count_revisions,
)


def test_packaged_migrations_have_key_value_head():
    script = ScriptDirectory.from_config(build_alembic_config())

    assert script.get_current_head() == "0001_key_value"


def test_count_revisions():
    script = ScriptDirectory.from_config(build_alembic_config())

    assert count_revisions(script, "0001_key_value", None) == 1
    assert count_revisions(script, "0001_key_value", "0001_key_value") == 0
    assert count_revisions(script, None, None) == 0


@pytest.mark.asyncio
async def test_migrate_up_returns_applied_count(monkeypatch):
    class FakeConn:
        async def run_sync(self, fn, *args):
            return 1

    class FakeBegin:
        async def __aenter__(self):
            return FakeConn()

        async def __aexit__(self, *exc):
            return False

    engine = MagicMock()
    engine.begin.return_value = FakeBegin()

    assert await KeyValueMigrator(engine).migrate_up() == 1


@pytest.mark.asyncio
async def test_migrate_failure_is_migration_error():
    engine = MagicMock()
    engine.begin.side_effect = OperationalError("connect", {}, Exception("down"))

    with pytest.raises(MigrationError):
        await KeyValueMigrator(engine).migrate_down()
