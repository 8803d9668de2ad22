"""
Tests for TransferConfig and environment loading.
"""
from pathlib import Path

import pytest
from pydantic import ValidationError

from passwall_backup.conf import (
    MAX_UPLOAD_SIZE,
    TransferConfig,
    generate_passphrase,
    load_passphrase,
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "PASSWALL_PASSPHRASE",
        "PASSWALL_BACKUP_FOLDER",
        "PASSWALL_CIPHER_BACKEND",
        "PASSWALL_MAX_UPLOAD_SIZE",
        "PASSWALL_TEMP_DIR",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestLoadPassphrase:

    def test_missing(self, clean_env):
        """Test unset passphrase variable raises."""
        with pytest.raises(RuntimeError):
            load_passphrase()

    def test_empty(self, clean_env):
        """Test empty passphrase variable raises."""
        clean_env.setenv("PASSWALL_PASSPHRASE", "")
        with pytest.raises(RuntimeError):
            load_passphrase()

    def test_present(self, clean_env):
        """Test passphrase is read from the environment."""
        clean_env.setenv("PASSWALL_PASSPHRASE", "abc")
        assert load_passphrase() == "abc"


class TestTransferConfig:

    def test_defaults(self):
        """Test default config values."""
        config = TransferConfig(passphrase="abc")
        assert config.backup_folder == Path("./store")
        assert config.cipher_backend == "aesgcm"
        assert config.max_upload_size == MAX_UPLOAD_SIZE == 10 * 1024 * 1024
        assert config.upload_dir

    def test_passphrase_hidden_from_repr(self):
        """Test passphrase hidden from repr."""
        assert "abc123" not in repr(TransferConfig(passphrase="abc123"))

    def test_rejects_empty_passphrase(self):
        """Test rejects empty passphrase."""
        with pytest.raises(ValidationError):
            TransferConfig(passphrase="")

    def test_rejects_unknown_cipher(self):
        """Test rejects unknown cipher."""
        with pytest.raises(ValidationError):
            TransferConfig(passphrase="abc", cipher_backend="rot13")

    def test_rejects_missing_temp_dir(self, tmp_path):
        """Test rejects missing temp dir."""
        with pytest.raises(ValidationError):
            TransferConfig(passphrase="abc", temp_dir=tmp_path / "nope")

    def test_rejects_file_as_backup_folder(self, tmp_path):
        """Test rejects file as backup folder."""
        path = tmp_path / "file"
        path.write_text("x")
        with pytest.raises(ValidationError):
            TransferConfig(passphrase="abc", backup_folder=path)

    def test_from_env(self, clean_env, tmp_path):
        """Test building the config from environment variables."""
        clean_env.setenv("PASSWALL_PASSPHRASE", "abc")
        clean_env.setenv("PASSWALL_BACKUP_FOLDER", str(tmp_path / "bk"))
        clean_env.setenv("PASSWALL_CIPHER_BACKEND", "CHACHA20")
        clean_env.setenv("PASSWALL_MAX_UPLOAD_SIZE", "2048")
        clean_env.setenv("PASSWALL_TEMP_DIR", str(tmp_path))
        config = TransferConfig.from_env()
        assert config.passphrase == "abc"
        assert config.backup_folder == tmp_path / "bk"
        assert config.cipher_backend == "chacha20"
        assert config.max_upload_size == 2048
        assert config.upload_dir == str(tmp_path)


def test_generate_passphrase():
    """Test generate passphrase."""
    first = generate_passphrase()
    assert len(first) >= 32
    assert first != generate_passphrase()
