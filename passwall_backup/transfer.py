"""
Import/Export Engine: Bulk conversion between CSV files and the login store.

Import parses and encrypts every row before the first store write, so a
malformed row or cipher error leaves the store untouched. Store writes are
not wrapped in a transaction: if one fails, the rows already saved stay and
the error reports how many there were.

Security Note:
    Plaintext passwords exist in memory only while a request runs.
    Never log them.
"""
import logging

from . import csv_codec
from .crypto import EncryptionProvider
from .csv_codec import CsvSource
from .exceptions import DecryptionFailed, StoreFailure
from .models import CredentialDTO, CredentialRecord
from .store import Store

logger = logging.getLogger("passwall.backup")


async def save_records(store: Store, records: list[CredentialRecord]) -> int:
    """Persist records one by one into the logins collection.

    Raises:
        StoreFailure: With ``saved`` set to the number persisted before
            the failing record.
    """
    logins = store.logins()
    saved = 0
    for record in records:
        try:
            await logins.save(record)
        except StoreFailure as err:
            raise StoreFailure(
                f"{err.message} (after {saved} of {len(records)} records)",
                saved=saved,
            ) from err
        saved += 1
    return saved


async def decrypt_logins(store: Store, crypto: EncryptionProvider) -> list[CredentialDTO]:
    """Read every login and decrypt its password.

    Raises:
        StoreFailure: If the store cannot be read.
        DecryptionFailed: On the first record that does not decrypt.
    """
    rows = await store.logins().find()
    dtos: list[CredentialDTO] = []
    for row in rows:
        try:
            password = crypto.decrypt_field(row.get("password") or "")
        except DecryptionFailed as err:
            raise DecryptionFailed(
                f"cannot decrypt password of login id={row.get('id')}"
            ) from err
        dtos.append(
            CredentialDTO(
                url=row.get("url") or "",
                username=row.get("username") or "",
                password=password,
            )
        )
    return dtos


class ImportExportEngine:
    """CSV import into, and export out of, the login store."""

    def __init__(self, store: Store, crypto: EncryptionProvider):
        self._store = store
        self._crypto = crypto

    async def import_csv(
        self,
        source: CsvSource,
        url: str = "",
        username: str = "",
        password: str = "",
    ) -> int:
        """Import CSV rows as logins, filling empty fields with defaults.

        Args:
            source: CSV bytes, text or an open file.
            url: Default for rows with an empty URL.
            username: Default for rows with an empty username.
            password: Default for rows with an empty password.

        Returns:
            Number of logins stored.

        Raises:
            MalformedRecord: A row has the wrong column count.
            EncryptionFailed: A password could not be encrypted.
            StoreFailure: The store rejected a record.
        """
        dtos = csv_codec.decode(source)
        records = [
            CredentialRecord(
                url=dto.url or url,
                username=dto.username or username,
                password=self._crypto.encrypt_field(dto.password or password),
            )
            for dto in dtos
        ]
        count = await save_records(self._store, records)
        logger.info("Imported %d login(s) from CSV", count)
        return count

    async def export_csv(self) -> bytes:
        """Export all logins as plaintext CSV, header row first.

        Raises:
            StoreFailure: If the store cannot be read.
            DecryptionFailed: If any single password fails to decrypt;
                no partial CSV is produced.
        """
        dtos = await decrypt_logins(self._store, self._crypto)
        data = csv_codec.encode(dtos)
        logger.info("Exported %d login(s) to CSV", len(dtos))
        return data
