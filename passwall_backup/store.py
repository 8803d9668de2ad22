"""
Record Store: Per-entity collections backed by an asyncpg-compatible pool.

The transfer engines only depend on the ``Store`` / ``Collection``
interfaces; ``PgStore`` is the PostgreSQL implementation used by the server.

Security Note:
    Rows handed to ``save()`` already carry encrypted secret fields.
    Never log row values, only table names and ids.
"""
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from .exceptions import StoreFailure

logger = logging.getLogger("passwall.backup")


# ---------------------------------------------------------------------------
# Schemas (column -> SQL type with default)
# ---------------------------------------------------------------------------

LOGINS = "logins"
CREDIT_CARDS = "credit_cards"
BANK_ACCOUNTS = "bank_accounts"
NOTES = "notes"
TOKENS = "tokens"

SCHEMAS: dict[str, dict[str, str]] = {
    LOGINS: {
        "url": "TEXT NOT NULL DEFAULT ''",
        "username": "TEXT NOT NULL DEFAULT ''",
        "password": "TEXT NOT NULL DEFAULT ''",
    },
    CREDIT_CARDS: {
        "card_name": "TEXT NOT NULL DEFAULT ''",
        "cardholder_name": "TEXT NOT NULL DEFAULT ''",
        "type": "TEXT NOT NULL DEFAULT ''",
        "number": "TEXT NOT NULL DEFAULT ''",
        "verification_number": "TEXT NOT NULL DEFAULT ''",
        "expiry_date": "TEXT NOT NULL DEFAULT ''",
    },
    BANK_ACCOUNTS: {
        "bank_name": "TEXT NOT NULL DEFAULT ''",
        "bank_code": "TEXT NOT NULL DEFAULT ''",
        "account_name": "TEXT NOT NULL DEFAULT ''",
        "account_number": "TEXT NOT NULL DEFAULT ''",
        "iban": "TEXT NOT NULL DEFAULT ''",
        "currency": "TEXT NOT NULL DEFAULT ''",
        "password": "TEXT NOT NULL DEFAULT ''",
    },
    NOTES: {
        "title": "TEXT NOT NULL DEFAULT ''",
        "note": "TEXT NOT NULL DEFAULT ''",
    },
    TOKENS: {
        "user_id": "INTEGER",
        "uuid": "TEXT NOT NULL DEFAULT ''",
        "token": "TEXT NOT NULL DEFAULT ''",
        "expiry_time": "TIMESTAMPTZ",
    },
}

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS {table} (
    id SERIAL PRIMARY KEY,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    deleted_at TIMESTAMPTZ
)
"""

_ADD_COLUMN = "ALTER TABLE {table} ADD COLUMN IF NOT EXISTS {column} {definition}"

_SELECT_ALL = """
SELECT id, {columns}
FROM {table}
WHERE deleted_at IS NULL
ORDER BY id
"""

_INSERT = """
INSERT INTO {table} ({columns})
VALUES ({placeholders})
RETURNING id
"""


# ---------------------------------------------------------------------------
# Interfaces
# ---------------------------------------------------------------------------

class Collection(ABC):
    """Keyed collection of one entity type."""

    name: str

    @abstractmethod
    async def find(self) -> list[dict]:
        """Return every live row, in the store's enumeration order."""

    @abstractmethod
    async def save(self, record: Any) -> Any:
        """Persist a row and return its store-assigned id."""

    @abstractmethod
    async def migrate(self) -> None:
        """Add missing structure without touching existing rows."""


class Store(ABC):
    """Entry point to the per-entity collections."""

    @abstractmethod
    def logins(self) -> Collection:
        ...

    @abstractmethod
    def credit_cards(self) -> Collection:
        ...

    @abstractmethod
    def bank_accounts(self) -> Collection:
        ...

    @abstractmethod
    def notes(self) -> Collection:
        ...

    @abstractmethod
    def tokens(self) -> Collection:
        ...

    def collections(self) -> list[Collection]:
        """All collections, in migration order."""
        return [
            self.logins(),
            self.credit_cards(),
            self.bank_accounts(),
            self.notes(),
            self.tokens(),
        ]

    async def find(self) -> list[dict]:
        """Shortcut for every login row."""
        return await self.logins().find()


def as_row(record: Any) -> dict:
    """Turn a pydantic model or mapping into a plain column dict."""
    if hasattr(record, "to_row"):
        return record.to_row()
    if hasattr(record, "model_dump"):
        return record.model_dump()
    if isinstance(record, Mapping):
        return dict(record)
    raise TypeError(f"Cannot persist object of type {type(record).__name__}")


# ---------------------------------------------------------------------------
# PostgreSQL implementation
# ---------------------------------------------------------------------------

class TableCollection(Collection):
    """A collection stored in one PostgreSQL table."""

    def __init__(self, db_pool: Any, table: str, columns: dict[str, str]):
        self._db = db_pool
        self.name = table
        self._columns = columns

    async def find(self) -> list[dict]:
        sql = _SELECT_ALL.format(
            table=self.name, columns=", ".join(self._columns),
        )
        try:
            async with self._db.acquire() as conn:
                rows = await conn.fetch(sql)
        except Exception as err:
            raise StoreFailure(f"cannot read {self.name}: {err}") from err
        return [dict(row) for row in rows]

    async def save(self, record: Any) -> Any:
        row = as_row(record)
        columns = [c for c in self._columns if c in row]
        if not columns:
            raise StoreFailure(f"no {self.name} columns in record")
        sql = _INSERT.format(
            table=self.name,
            columns=", ".join(columns),
            placeholders=", ".join(f"${i}" for i in range(1, len(columns) + 1)),
        )
        try:
            async with self._db.acquire() as conn:
                record_id = await conn.fetchval(sql, *(row[c] for c in columns))
        except Exception as err:
            raise StoreFailure(f"cannot save to {self.name}: {err}") from err
        logger.debug("Saved %s id=%s", self.name, record_id)
        return record_id

    async def migrate(self) -> None:
        try:
            async with self._db.acquire() as conn:
                await conn.execute(_CREATE_TABLE.format(table=self.name))
                for column, definition in self._columns.items():
                    await conn.execute(
                        _ADD_COLUMN.format(
                            table=self.name, column=column, definition=definition,
                        )
                    )
        except Exception as err:
            raise StoreFailure(f"cannot migrate {self.name}: {err}") from err
        logger.debug("Migrated %s", self.name)


class PgStore(Store):
    """Store over an asyncpg-compatible connection pool."""

    def __init__(self, db_pool: Any):
        self._db = db_pool
        self._collections = {
            table: TableCollection(db_pool, table, columns)
            for table, columns in SCHEMAS.items()
        }

    def logins(self) -> Collection:
        return self._collections[LOGINS]

    def credit_cards(self) -> Collection:
        return self._collections[CREDIT_CARDS]

    def bank_accounts(self) -> Collection:
        return self._collections[BANK_ACCOUNTS]

    def notes(self) -> Collection:
        return self._collections[NOTES]

    def tokens(self) -> Collection:
        return self._collections[TOKENS]
