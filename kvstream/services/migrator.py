from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from alembic.util import CommandError
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from kvstream.core.constants import MIGRATIONS_VERSION_TABLE
from kvstream.core.exceptions import MigrationError

logger = logging.getLogger("kvstream")

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"


def build_alembic_config() -> Config:
    """Alembic config pointing at the migrations shipped with the package."""
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    return cfg


def _current_revision(connection: Connection) -> str | None:
    ctx = MigrationContext.configure(
        connection, opts={"version_table": MIGRATIONS_VERSION_TABLE}
    )
    return ctx.get_current_revision()


def count_revisions(script: ScriptDirectory, upper: str | None, lower: str | None) -> int:
    """Number of revisions strictly above lower, up to and including upper."""
    if upper is None or upper == lower:
        return 0
    return sum(1 for _ in script.iterate_revisions(upper, lower or "base"))


class KeyValueMigrator:
    """Applies the key_value schema migrations up or down."""

    def __init__(self, engine: AsyncEngine, *, log: logging.Logger | None = None) -> None:
        self._engine = engine
        self._log = log if log is not None else logger

    async def migrate_up(self) -> int:
        return await self._migrate("up")

    async def migrate_down(self) -> int:
        return await self._migrate("down")

    async def _migrate(self, direction: str) -> int:
        try:
            async with self._engine.begin() as conn:
                applied = await conn.run_sync(self._run, direction)
        except (SQLAlchemyError, CommandError) as exc:
            raise MigrationError(
                f"failed to execute key value migration {direction}"
            ) from exc

        self._log.info("key value migrations applied direction=%s applied=%d", direction, applied)
        return applied

    def _run(self, connection: Connection, direction: str) -> int:
        cfg = build_alembic_config()
        cfg.attributes["connection"] = connection
        script = ScriptDirectory.from_config(cfg)

        before = _current_revision(connection)
        if direction == "up":
            command.upgrade(cfg, "head")
        else:
            command.downgrade(cfg, "base")
        after = _current_revision(connection)

        if direction == "up":
            return count_revisions(script, after, before)
        return count_revisions(script, before, after)
