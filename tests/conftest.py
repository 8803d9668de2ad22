"""
Shared fixtures for the passwall_backup test suite.

Provides an in-memory record store, a fake asyncpg-style pool, encryption
providers and a transfer configuration rooted in a temp directory.
"""
from contextlib import asynccontextmanager
from typing import Any, Optional

import pytest

from passwall_backup.conf import TransferConfig
from passwall_backup.crypto import EncryptionProvider
from passwall_backup.exceptions import StoreFailure
from passwall_backup.store import Collection, Store, as_row

PASSPHRASE = "correct horse battery staple"
OTHER_PASSPHRASE = "tr0ub4dor&3"


class MemoryCollection(Collection):
    """List-backed collection; can be told to fail saves or migration."""

    def __init__(self, name: str):
        self.name = name
        self.rows: list[dict] = []
        self.migrated = False
        self.fail_migrate = False
        self.fail_find = False
        self.fail_after: Optional[int] = None

    async def find(self) -> list[dict]:
        if self.fail_find:
            raise StoreFailure(f"cannot read {self.name}")
        return [dict(row) for row in self.rows]

    async def save(self, record: Any) -> Any:
        if self.fail_after is not None and len(self.rows) >= self.fail_after:
            raise StoreFailure(f"cannot save to {self.name}")
        row = as_row(record)
        row["id"] = len(self.rows) + 1
        self.rows.append(row)
        return row["id"]

    async def migrate(self) -> None:
        if self.fail_migrate:
            raise StoreFailure(f"cannot migrate {self.name}")
        self.migrated = True


class MemoryStore(Store):
    def __init__(self):
        self._collections = {
            name: MemoryCollection(name)
            for name in ("logins", "credit_cards", "bank_accounts", "notes", "tokens")
        }

    def __getitem__(self, name: str) -> MemoryCollection:
        return self._collections[name]

    def logins(self) -> MemoryCollection:
        return self._collections["logins"]

    def credit_cards(self) -> MemoryCollection:
        return self._collections["credit_cards"]

    def bank_accounts(self) -> MemoryCollection:
        return self._collections["bank_accounts"]

    def notes(self) -> MemoryCollection:
        return self._collections["notes"]

    def tokens(self) -> MemoryCollection:
        return self._collections["tokens"]


class FakeConnection:
    """Records SQL like an asyncpg connection."""

    def __init__(self, rows=None, error: Optional[Exception] = None):
        self.rows = rows or []
        self.error = error
        self.executed: list[tuple] = []
        self.next_id = 0

    def _record(self, sql: str, args: tuple) -> None:
        if self.error is not None:
            raise self.error
        self.executed.append((sql, args))

    async def fetch(self, sql: str, *args):
        self._record(sql, args)
        return self.rows

    async def fetchval(self, sql: str, *args):
        self._record(sql, args)
        self.next_id += 1
        return self.next_id

    async def execute(self, sql: str, *args):
        self._record(sql, args)
        return "OK"


class FakePool:
    def __init__(self, conn: FakeConnection):
        self.conn = conn

    @asynccontextmanager
    async def acquire(self):
        yield self.conn


@pytest.fixture
def crypto():
    return EncryptionProvider(PASSPHRASE)


@pytest.fixture
def other_crypto():
    return EncryptionProvider(OTHER_PASSPHRASE)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def backup_folder(tmp_path):
    return tmp_path / "store"


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def config(backup_folder, upload_dir):
    return TransferConfig(
        passphrase=PASSPHRASE,
        backup_folder=backup_folder,
        temp_dir=upload_dir,
    )


@pytest.fixture
def seeded_store(store, crypto):
    """Store holding three logins with encrypted passwords."""
    for url, username, password in (
        ("https://github.com", "octocat", "hunter2"),
        ("https://example.com", "alice", "p,a\"ss"),
        ("https://bank.example", "bob", "line1\nline2"),
    ):
        store.logins().rows.append({
            "id": len(store.logins().rows) + 1,
            "url": url,
            "username": username,
            "password": crypto.encrypt_field(password),
        })
    return store
