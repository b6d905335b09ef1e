from __future__ import annotations

import argparse
import asyncio
import logging

from sqlalchemy import text

from kvstream.config import get_settings
from kvstream.db import async_session_factory, engine
from kvstream.runner.worker import StreamWorker
from kvstream.services.migrator import KeyValueMigrator

logger = logging.getLogger("kvstream")


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] [kvstream] %(message)s",
    )


async def wait_for_db(
    *,
    attempts: int = 10,
    delays: tuple[float, ...] = (1, 2, 4, 8, 8, 8, 8, 8, 8, 8),
) -> None:
    """Ping the database until it answers; give up after `attempts` tries."""
    last_exc: Exception | None = None

    for i in range(1, attempts + 1):
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info("DB connection OK")
            return
        except Exception as exc:  # noqa: BLE001
            last_exc = exc
            delay = delays[i - 1] if i - 1 < len(delays) else delays[-1]
            logger.warning("DB not ready (%d/%d). Retrying in %ss... err=%r", i, attempts, delay, exc)
            await asyncio.sleep(delay)

    logger.error("DB did not become ready after %d attempts", attempts)
    raise last_exc  # type: ignore[misc]


def create_worker(**kwargs) -> StreamWorker:
    """StreamWorker on the application session factory; see StreamWorker for kwargs."""
    return StreamWorker(async_session_factory, **kwargs)


async def migrate(direction: str) -> int:
    await wait_for_db()
    migrator = KeyValueMigrator(engine)
    try:
        if direction == "up":
            return await migrator.migrate_up()
        return await migrator.migrate_down()
    finally:
        await engine.dispose()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="kvstream", description="key_value schema migrations")
    parser.add_argument("direction", choices=("up", "down"))
    args = parser.parse_args(argv)

    setup_logging(get_settings().log_level)
    applied = asyncio.run(migrate(args.direction))
    logger.info("Done: direction=%s applied=%d", args.direction, applied)


if __name__ == "__main__":
    main()
