"""
Credential vault for stored third-party logins.

AES-256-CBC with a fresh random IV per call. Ciphertexts are stored as
"<iv hex>:<ciphertext hex>".
"""
import os
from typing import Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from backend.config import settings
from backend.errors import ConfigurationError, DecryptionError

_KEY_HEX_LENGTH = 64
_IV_BYTES = 16


def _load_key(key_hex: Optional[str] = None) -> bytes:
    key_hex = settings.encryption_key if key_hex is None else key_hex
    if not key_hex or len(key_hex) != _KEY_HEX_LENGTH:
        raise ConfigurationError(
            f"ENCRYPTION_KEY must be {_KEY_HEX_LENGTH} hex characters (32 bytes), "
            f"got {len(key_hex or '')}. Generate one with "
            "python -c \"import secrets; print(secrets.token_hex(32))\""
        )
    try:
        return bytes.fromhex(key_hex)
    except ValueError:
        raise ConfigurationError("ENCRYPTION_KEY is not valid hex") from None


def validate_key(key_hex: Optional[str] = None) -> None:
    """Raise ConfigurationError if the process-wide key is unusable."""
    _load_key(key_hex)


def encrypt(plaintext: str, key_hex: Optional[str] = None) -> str:
    key = _load_key(key_hex)
    iv = os.urandom(_IV_BYTES)

    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return f"{iv.hex()}:{ciphertext.hex()}"


def decrypt(token: str, key_hex: Optional[str] = None) -> str:
    key = _load_key(key_hex)
    if not token or ":" not in token:
        raise DecryptionError("Malformed ciphertext: missing IV separator")

    iv_hex, body_hex = token.split(":", 1)
    try:
        iv = bytes.fromhex(iv_hex)
        body = bytes.fromhex(body_hex)
    except ValueError:
        raise DecryptionError("Malformed ciphertext: not hex encoded") from None
    if len(iv) != _IV_BYTES or not body or len(body) % _IV_BYTES:
        raise DecryptionError("Malformed ciphertext: bad IV or block length")

    try:
        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(body) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        plain = unpadder.update(padded) + unpadder.finalize()
        return plain.decode("utf-8")
    except (ValueError, UnicodeDecodeError):
        raise DecryptionError("Could not decrypt credential (wrong key?)") from None


def decrypt_credentials(store) -> tuple:
    """Return (email, password) for a store with saved credentials."""
    if not store.has_credentials:
        raise DecryptionError(f"Store {store.id} has no saved credentials")
    return decrypt(store.encrypted_email), decrypt(store.encrypted_password)
