"""
Transfer errors.

Every error carries the HTTP status used when it reaches the request
boundary, so handlers can answer with a uniform envelope.
"""
from typing import Optional


class TransferError(Exception):
    """Base class for backup, restore, import and export failures."""

    status_code: int = 500

    def __init__(self, message: str = "", *, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message or self.__class__.__name__
        if status_code is not None:
            self.status_code = status_code

    def __str__(self) -> str:
        return self.message


class UploadRejected(TransferError):
    """Upload refused before it reached the importer."""

    status_code = 400


class PayloadTooLarge(UploadRejected):
    """Request body exceeds the configured upload limit."""

    status_code = 413

    def __init__(self, limit: int):
        super().__init__(f"upload exceeds maximum size of {limit} bytes")
        self.limit = limit


class UnsupportedFileType(UploadRejected):
    """Uploaded file extension is not accepted."""

    status_code = 415

    def __init__(self, extension: str):
        super().__init__(f"{extension or '(none)'} unsupported filetype")
        self.extension = extension


class TransferIOError(TransferError):
    """Temp file, backup file or directory access failed."""


class EncryptionFailed(TransferError):
    """A secret or snapshot could not be encrypted."""


class DecryptionFailed(TransferError):
    """Wrong passphrase or corrupted ciphertext."""


class MalformedRecord(TransferError):
    """A CSV row has the wrong shape."""

    status_code = 422

    def __init__(self, row: int, message: str = ""):
        super().__init__(message or f"malformed record at row {row}")
        self.row = row


class MalformedBackup(TransferError):
    """A decrypted snapshot is not a valid credential array."""

    status_code = 422


class NotFound(TransferError):
    """Named backup does not exist or cannot be opened."""

    status_code = 404


class StoreFailure(TransferError):
    """The record store rejected a read, write or migration.

    ``saved`` is the number of records persisted before the failure.
    """

    def __init__(self, message: str = "", *, saved: int = 0):
        super().__init__(message)
        self.saved = saved
