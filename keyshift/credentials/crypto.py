"""Symmetric encryption of secrets stored in the settings document.

Security Model:
- Each secret is encrypted individually with Fernet (AES-128-CBC + HMAC)
- The key is per-installation: either a random key kept in a 0600 key file,
  or derived from a master password with PBKDF2-HMAC-SHA256
- No key material is compiled into the package
"""

from __future__ import annotations

import base64
import secrets
from pathlib import Path

import structlog
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from keyshift.exceptions import EncryptionError

log = structlog.get_logger(__name__)

PBKDF2_ITERATIONS = 480_000


class CredentialCipher:
    """Encrypt and decrypt individual secrets.

    Example:
        >>> cipher = CredentialCipher.from_key_file(Path(".keyshift/credentials.key"))
        >>> token = cipher.encrypt("sk-ant-abc123")
        >>> cipher.decrypt(token)
        'sk-ant-abc123'
    """

    def __init__(self, key: bytes) -> None:
        """Initialize cipher.

        Args:
            key: URL-safe base64-encoded 32-byte Fernet key
        """
        try:
            self._fernet = Fernet(key)
        except (ValueError, TypeError) as e:
            raise EncryptionError("Invalid encryption key", suggestion="Delete the key file to regenerate it") from e

    @classmethod
    def generate(cls) -> CredentialCipher:
        """Cipher with a fresh random key (not persisted)."""
        return cls(Fernet.generate_key())

    @classmethod
    def from_key_file(cls, key_file: Path) -> CredentialCipher:
        """Load the installation key, generating it on first use.

        Args:
            key_file: Path of the key file

        Returns:
            CredentialCipher using the stored key

        Raises:
            EncryptionError: If the key file cannot be read or written
        """
        try:
            if key_file.exists():
                return cls(key_file.read_bytes().strip())

            key = Fernet.generate_key()
            key_file.parent.mkdir(parents=True, exist_ok=True)
            key_file.write_bytes(key)
            _restrict_permissions(key_file)
            log.info("encryption_key_generated", key_file=str(key_file))
            return cls(key)
        except OSError as e:
            raise EncryptionError(f"Cannot access key file {key_file}: {e}") from e

    @classmethod
    def from_password(cls, password: str, salt: bytes) -> CredentialCipher:
        """Derive the key from a master password.

        Uses PBKDF2-HMAC-SHA256 with 480,000 iterations (OWASP 2023 recommendation).

        Args:
            password: Master password
            salt: Cryptographic salt

        Returns:
            CredentialCipher using the derived key
        """
        if not password:
            raise EncryptionError("Master password cannot be empty")

        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=PBKDF2_ITERATIONS,
        )
        key = kdf.derive(password.encode("utf-8"))
        return cls(base64.urlsafe_b64encode(key))

    @staticmethod
    def load_or_generate_salt(salt_file: Path) -> bytes:
        """Load the 16-byte salt from disk or create it."""
        try:
            if salt_file.exists():
                return salt_file.read_bytes()

            salt = secrets.token_bytes(16)
            salt_file.parent.mkdir(parents=True, exist_ok=True)
            salt_file.write_bytes(salt)
            _restrict_permissions(salt_file)
            return salt
        except OSError as e:
            raise EncryptionError(f"Cannot access salt file {salt_file}: {e}") from e

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a secret to URL-safe token text."""
        try:
            return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")
        except (AttributeError, TypeError) as e:
            raise EncryptionError(f"Failed to encrypt credential: {e}") from e

    def decrypt(self, token: str) -> str:
        """Decrypt token text produced by :meth:`encrypt`.

        Raises:
            EncryptionError: If the token is malformed, was produced with
                another key, or does not decode to UTF-8
        """
        try:
            return self._fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except InvalidToken as e:
            raise EncryptionError(
                "Credential could not be decrypted",
                suggestion="The key may have changed; store the credential again",
            ) from e
        except (AttributeError, TypeError, UnicodeError) as e:
            raise EncryptionError(f"Stored credential is malformed: {e}") from e


def _restrict_permissions(path: Path) -> None:
    # Unix only
    try:
        path.chmod(0o600)
    except OSError as e:
        log.warning("file_permissions_not_set", path=str(path), error=str(e))
