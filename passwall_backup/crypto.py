"""
Transfer Crypto Core: Key derivation and passphrase-keyed encryption.

Secret fields and backup snapshots share one layout:
    HKDF(passphrase, "passwall-backup") → AEAD → [nonce 12B][payload + tag 16B]

Secret fields stored in the record store are the base64 text of that layout.

Security Note:
    Never log plaintext, ciphertext or the passphrase.
    Nonces are random 96-bit; collision probability negligible under normal usage.
"""
import os
import base64
import binascii
import logging
from pathlib import Path
from typing import Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from .exceptions import DecryptionFailed, EncryptionFailed, NotFound

logger = logging.getLogger("passwall.backup")

NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16
KEY_LENGTH = 32  # AES-256
KEY_CONTEXT = "passwall-backup"

_CIPHERS = {
    "aesgcm": AESGCM,
    "chacha20": ChaCha20Poly1305,
}


def derive_key(passphrase: str, context: str = KEY_CONTEXT) -> bytes:
    """Derive a 32-byte encryption key from the passphrase using HKDF-SHA256.

    Args:
        passphrase: Server passphrase.
        context: Context string for domain separation.

    Returns:
        32-byte derived key.
    """
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=None,  # deterministic: snapshots must decrypt after restart
        info=context.encode("utf-8"),
    )
    return hkdf.derive(passphrase.encode("utf-8"))


class EncryptionProvider:
    """Symmetric encryption keyed by the active passphrase.

    One instance carries the key for one passphrase; engines receive it
    explicitly instead of reading the passphrase from global settings.
    """

    def __init__(self, passphrase: str, cipher_backend: str = "aesgcm"):
        if not passphrase:
            raise ValueError("passphrase cannot be empty")
        try:
            cipher_cls = _CIPHERS[cipher_backend.lower()]
        except KeyError:
            raise ValueError(
                f"Unsupported cipher backend: {cipher_backend}"
            ) from None
        self._cipher = cipher_cls(derive_key(passphrase))
        self.cipher_backend = cipher_backend.lower()

    @classmethod
    def from_config(cls, config) -> "EncryptionProvider":
        """Build a provider from a TransferConfig."""
        return cls(config.passphrase, config.cipher_backend)

    # ------------------------------------------------------------------
    # Raw bytes
    # ------------------------------------------------------------------

    def encrypt(self, plaintext: Union[str, bytes]) -> bytes:
        """Encrypt plaintext.

        Returns:
            [nonce 12B][payload + tag] bytes.

        Raises:
            EncryptionFailed: If the cipher rejects the input.
        """
        if isinstance(plaintext, str):
            plaintext = plaintext.encode("utf-8")
        nonce = os.urandom(NONCE_SIZE)
        try:
            ct = self._cipher.encrypt(nonce, plaintext, None)
        except (TypeError, ValueError, OverflowError) as err:
            raise EncryptionFailed(f"encryption failed: {err}") from err
        return nonce + ct

    def decrypt(self, ciphertext: bytes) -> bytes:
        """Decrypt [nonce][payload + tag] bytes.

        Raises:
            DecryptionFailed: Wrong passphrase, truncated or tampered data.
        """
        _min = NONCE_SIZE + TAG_SIZE
        if len(ciphertext) < _min:
            raise DecryptionFailed(
                f"ciphertext too short: {len(ciphertext)} bytes "
                f"(minimum {_min})"
            )
        nonce = ciphertext[:NONCE_SIZE]
        ct = ciphertext[NONCE_SIZE:]
        try:
            return self._cipher.decrypt(nonce, ct, None)
        except InvalidTag as err:
            raise DecryptionFailed(
                "decryption failed: wrong passphrase or corrupted data"
            ) from err

    # ------------------------------------------------------------------
    # Secret fields (base64 text)
    # ------------------------------------------------------------------

    def encrypt_field(self, value: str) -> str:
        """Encrypt a secret field and return base64 text for the store."""
        return base64.b64encode(self.encrypt(value)).decode("ascii")

    def decrypt_field(self, value: str) -> str:
        """Decrypt a base64 secret field back to plaintext.

        Raises:
            DecryptionFailed: If the value is not valid base64, fails
                authentication or is not UTF-8.
        """
        try:
            raw = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as err:
            raise DecryptionFailed("secret field is not valid base64") from err
        try:
            return self.decrypt(raw).decode("utf-8")
        except UnicodeDecodeError as err:
            raise DecryptionFailed("secret field is not valid UTF-8") from err

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def decrypt_file(self, path: Union[str, Path]) -> bytes:
        """Read and decrypt a whole file.

        Raises:
            NotFound: If the file does not exist or cannot be opened.
            DecryptionFailed: If the contents fail authentication.
        """
        try:
            data = Path(path).read_bytes()
        except OSError as err:
            raise NotFound(f"cannot open {Path(path).name}: {err.strerror}") from err
        return self.decrypt(data)
