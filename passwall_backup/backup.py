"""
Backup Engine: Encrypted, timestamped snapshots of the login store.

Snapshot format: AEAD( orjson([{"url", "username", "password"}, ...]) )
with plaintext passwords inside the encrypted container only.

Files are written to a hidden temp sibling and renamed into place, so a
failed backup never leaves a truncated snapshot under its final name.
"""
import os
import secrets
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Union

import orjson

from .conf import BACKUP_EXTENSION, BACKUP_PREFIX
from .crypto import EncryptionProvider
from .exceptions import MalformedBackup, TransferIOError
from .models import BackupDescriptor, CredentialDTO
from .store import Store
from .transfer import decrypt_logins

logger = logging.getLogger("passwall.backup")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def backup_name(now: datetime) -> str:
    """Build a snapshot file name from a timestamp plus a random suffix.

    The suffix keeps two backups started in the same second apart.
    """
    return (
        f"{BACKUP_PREFIX}-{now:%Y%m%d-%H%M%S}-{secrets.token_hex(3)}"
        f"{BACKUP_EXTENSION}"
    )


def serialize_snapshot(dtos: list[CredentialDTO]) -> bytes:
    """Serialize DTOs as an ordered JSON array."""
    try:
        return orjson.dumps([dto.model_dump() for dto in dtos])
    except (TypeError, orjson.JSONEncodeError) as err:
        raise MalformedBackup(f"cannot serialize snapshot: {err}") from err


def write_atomic(path: Path, payload: bytes) -> None:
    """Write payload to a temp sibling and rename it onto ``path``."""
    tmp_path = path.with_name(f".{path.name}.tmp")
    try:
        with open(tmp_path, "wb") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except OSError as err:
        try:
            os.remove(tmp_path)
        except FileNotFoundError:
            pass
        raise TransferIOError(f"cannot write backup {path.name}: {err}") from err


class BackupEngine:
    """Creates and lists snapshot files in the backup folder.

    Args:
        store: Record store to snapshot.
        crypto: Provider carrying the active passphrase.
        backup_folder: Directory holding the snapshots.
        clock: Returns the current time (UTC); injectable for tests.
    """

    def __init__(
        self,
        store: Store,
        crypto: EncryptionProvider,
        backup_folder: Union[str, Path],
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._crypto = crypto
        self.backup_folder = Path(backup_folder)
        self._clock = clock or _utcnow

    async def backup(self) -> BackupDescriptor:
        """Snapshot every login into a new encrypted file.

        Returns:
            Descriptor of the written snapshot.

        Raises:
            StoreFailure: Store read failed.
            DecryptionFailed: A stored password could not be decrypted.
            MalformedBackup: Serialization failed.
            EncryptionFailed: Snapshot encryption failed.
            TransferIOError: Snapshot could not be written.
        """
        dtos = await decrypt_logins(self._store, self._crypto)
        payload = serialize_snapshot(dtos)
        ciphertext = self._crypto.encrypt(payload)

        now = self._clock()
        try:
            self.backup_folder.mkdir(parents=True, exist_ok=True)
        except OSError as err:
            raise TransferIOError(
                f"cannot create backup folder: {err.strerror}"
            ) from err
        path = self.backup_folder / backup_name(now)
        write_atomic(path, ciphertext)
        logger.info("Backup %s written: %d login(s)", path.name, len(dtos))
        return BackupDescriptor(name=path.name, created_at=now)

    def list_backups(self) -> list[BackupDescriptor]:
        """One descriptor per snapshot file, ``created_at`` from its mtime.

        Hidden files (in-flight temp writes) and files removed while the
        folder is scanned are skipped. No ordering is guaranteed.

        Raises:
            TransferIOError: If the folder cannot be read.
        """
        descriptors: list[BackupDescriptor] = []
        try:
            with os.scandir(self.backup_folder) as entries:
                for entry in entries:
                    if entry.name.startswith(".") or not entry.is_file():
                        continue
                    try:
                        mtime = entry.stat().st_mtime
                    except FileNotFoundError:
                        continue  # removed after scandir listed it
                    descriptors.append(
                        BackupDescriptor(
                            name=entry.name,
                            created_at=datetime.fromtimestamp(mtime, tz=timezone.utc),
                        )
                    )
        except FileNotFoundError:
            return []
        except OSError as err:
            raise TransferIOError(
                f"cannot list backup folder: {err.strerror}"
            ) from err
        return descriptors
