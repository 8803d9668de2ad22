"""
Migration Runner: Additive schema migration for every entity collection.

Each collection migrates independently: a failure is logged and the next
collection still runs. Intended to run once at process startup.
"""
import logging

from .store import Store

logger = logging.getLogger("passwall.backup")


async def migrate_tables(store: Store) -> list[str]:
    """Run ``migrate()`` on logins, credit cards, bank accounts, notes, tokens.

    Args:
        store: Record store whose collections are migrated.

    Returns:
        Names of the collections whose migration failed.
    """
    failed: list[str] = []
    for collection in store.collections():
        try:
            await collection.migrate()
        except Exception as err:
            logger.error("Migration of %s failed: %s", collection.name, err)
            failed.append(collection.name)
    if failed:
        logger.warning(
            "Migration finished with %d failure(s): %s", len(failed), failed,
        )
    else:
        logger.info("Migration finished for all collections")
    return failed


class MigrationRunner:
    """Startup hook wrapper around ``migrate_tables``."""

    def __init__(self, store: Store):
        self._store = store

    async def migrate(self) -> list[str]:
        return await migrate_tables(self._store)
