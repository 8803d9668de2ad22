"""PassWall Backup: Encrypted backup/restore and CSV import/export.

Security Note (Threat Model):
    Plaintext passwords exist only in process memory during a request,
    inside encrypted snapshot files, and in CSV files the user explicitly
    uploads or downloads. Staged uploads are deleted when the request ends.
    The passphrase is the only key material; losing it makes every
    snapshot unrecoverable.
"""

from .backup import BackupEngine
from .conf import TransferConfig, generate_passphrase
from .crypto import EncryptionProvider
from .migrations import MigrationRunner, migrate_tables
from .restore import RestoreEngine
from .store import PgStore, Store
from .transfer import ImportExportEngine
from .upload import UploadIntake, staged_upload
from .version import __version__

__all__ = [
    "BackupEngine",
    "EncryptionProvider",
    "ImportExportEngine",
    "MigrationRunner",
    "PgStore",
    "RestoreEngine",
    "Store",
    "TransferConfig",
    "UploadIntake",
    "generate_passphrase",
    "migrate_tables",
    "staged_upload",
    "__version__",
]
