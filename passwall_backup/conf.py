"""
Transfer Configuration: Passphrase loading and validated settings.

Reads settings from environment variables:
    PASSWALL_PASSPHRASE = <server passphrase>
    PASSWALL_BACKUP_FOLDER = <directory holding .bak snapshots>
    PASSWALL_CIPHER_BACKEND = aesgcm | chacha20
    PASSWALL_MAX_UPLOAD_SIZE = <bytes, default 10 MiB>
    PASSWALL_TEMP_DIR = <directory for staged uploads>

Security Note:
    Never log the passphrase. Only log folder names and sizes.
"""
import os
import secrets
import logging
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger("passwall.backup")

BACKUP_EXTENSION = ".bak"
BACKUP_PREFIX = "passwall"
UPLOAD_PREFIX = "passwall-import-"
UPLOAD_EXTENSION = ".csv"
MAX_UPLOAD_SIZE = 10 << 20  # 10 MiB


def load_passphrase() -> str:
    """Read the server passphrase from PASSWALL_PASSPHRASE.

    Returns:
        The passphrase string.

    Raises:
        RuntimeError: If the variable is unset or empty.
    """
    passphrase = os.environ.get("PASSWALL_PASSPHRASE")
    if not passphrase:
        raise RuntimeError(
            "PASSWALL_PASSPHRASE environment variable is not set"
        )
    return passphrase


def get_backup_folder() -> Path:
    """Return the configured backup folder (defaults to ./store)."""
    return Path(os.environ.get("PASSWALL_BACKUP_FOLDER", "./store"))


def get_max_upload_size() -> int:
    """Return the upload body limit in bytes.

    Raises:
        ValueError: If the value is not a valid integer.
    """
    raw = os.environ.get("PASSWALL_MAX_UPLOAD_SIZE")
    if raw is None:
        return MAX_UPLOAD_SIZE
    return int(raw)


def generate_passphrase() -> str:
    """Generate a random URL-safe passphrase.

    This is a utility for operators bootstrapping a new server.
    """
    return secrets.token_urlsafe(32)


class TransferConfig(BaseModel):
    """Validated backup/import configuration."""

    passphrase: str = Field(repr=False)
    backup_folder: Path = Field(default=Path("./store"))
    cipher_backend: str = Field(default="aesgcm")
    max_upload_size: int = Field(default=MAX_UPLOAD_SIZE, ge=1)
    temp_dir: Optional[Path] = None

    @field_validator("passphrase")
    @classmethod
    def validate_passphrase(cls, v: str) -> str:
        """Reject empty passphrases."""
        if not v:
            raise ValueError("passphrase cannot be empty")
        return v

    @field_validator("cipher_backend")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Validate cipher backend is supported."""
        v = v.lower()
        if v not in ("aesgcm", "chacha20"):
            raise ValueError(f"Unsupported cipher backend: {v}")
        return v

    @model_validator(mode="after")
    def validate_folders(self) -> "TransferConfig":
        """Ensure backup folder and temp dir are not regular files."""
        if self.backup_folder.is_file():
            raise ValueError(
                f"backup_folder {self.backup_folder} is a file, not a directory"
            )
        if self.temp_dir is not None and not self.temp_dir.is_dir():
            raise ValueError(f"temp_dir {self.temp_dir} does not exist")
        return self

    @property
    def upload_dir(self) -> str:
        """Directory used for staged uploads."""
        return str(self.temp_dir) if self.temp_dir else tempfile.gettempdir()

    @classmethod
    def from_env(cls) -> "TransferConfig":
        """Create TransferConfig by loading values from environment.

        Returns:
            Populated TransferConfig instance.
        """
        temp_dir = os.environ.get("PASSWALL_TEMP_DIR")
        config = cls(
            passphrase=load_passphrase(),
            backup_folder=get_backup_folder(),
            cipher_backend=os.environ.get("PASSWALL_CIPHER_BACKEND", "aesgcm"),
            max_upload_size=get_max_upload_size(),
            temp_dir=Path(temp_dir) if temp_dir else None,
        )
        logger.debug(
            "Loaded transfer config: backup_folder=%s cipher=%s max_upload=%d",
            config.backup_folder, config.cipher_backend, config.max_upload_size,
        )
        return config
