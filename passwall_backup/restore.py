"""
Restore Engine: Load a snapshot back into the login store.

The snapshot container is decrypted with the active passphrase and each
password is re-encrypted under that same passphrase before saving, so
only snapshots taken under the current passphrase can be restored.
"""
import os
import logging
from pathlib import Path
from typing import Union

import orjson
from pydantic import TypeAdapter, ValidationError

from .conf import BACKUP_EXTENSION
from .crypto import EncryptionProvider
from .exceptions import MalformedBackup, NotFound
from .models import CredentialDTO, CredentialRecord
from .store import Store
from .transfer import save_records

logger = logging.getLogger("passwall.backup")

_SNAPSHOT = TypeAdapter(list[CredentialDTO])


def normalize_name(name: str) -> str:
    """Append the backup extension when ``name`` has none."""
    if not os.path.splitext(name)[1]:
        return f"{name}{BACKUP_EXTENSION}"
    return name


def parse_snapshot(data: bytes) -> list[CredentialDTO]:
    """Parse decrypted snapshot bytes; the whole array or nothing.

    Raises:
        MalformedBackup: If the payload is not an array of credentials.
    """
    try:
        return _SNAPSHOT.validate_python(orjson.loads(data))
    except orjson.JSONDecodeError as err:
        raise MalformedBackup(f"backup is not valid JSON: {err}") from err
    except ValidationError as err:
        raise MalformedBackup(
            f"backup has {err.error_count()} invalid element(s)"
        ) from err


class RestoreEngine:
    """Restores snapshots from the backup folder."""

    def __init__(
        self,
        store: Store,
        crypto: EncryptionProvider,
        backup_folder: Union[str, Path],
    ):
        self._store = store
        self._crypto = crypto
        self.backup_folder = Path(backup_folder)

    def resolve_path(self, name: str) -> Path:
        """Map a requested backup name to a file inside the backup folder.

        Raises:
            NotFound: If the name is empty, contains a path component or
                the file does not exist.
        """
        name = normalize_name(name.strip())
        if os.path.basename(name) != name or name in (".", ".."):
            raise NotFound(f"backup {name} not found")
        path = self.backup_folder / name
        if not path.is_file():
            raise NotFound(f"backup {name} not found")
        return path

    async def restore(self, name: str) -> int:
        """Restore the named snapshot into the store.

        Returns:
            Number of logins saved.

        Raises:
            NotFound: Snapshot missing or unreadable.
            DecryptionFailed: Wrong passphrase or corrupted snapshot.
            MalformedBackup: Decrypted payload is not a credential array.
            EncryptionFailed: A password could not be re-encrypted.
            StoreFailure: The store rejected a record; ``saved`` holds the
                count already persisted.
        """
        path = self.resolve_path(name)
        dtos = parse_snapshot(self._crypto.decrypt_file(path))
        records = [
            CredentialRecord(
                url=dto.url,
                username=dto.username,
                password=self._crypto.encrypt_field(dto.password),
            )
            for dto in dtos
        ]
        count = await save_records(self._store, records)
        logger.info("Restored %d login(s) from %s", count, path.name)
        return count
