"""AES-GCM encryption of stored OAuth tokens."""

import base64
import os

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

NONCE_SIZE = 12  # 96-bit nonce for GCM

_KEY_HINT = (
    'Generate with: python -c "import secrets, base64; '
    'print(base64.b64encode(secrets.token_bytes(32)).decode())"'
)


def validate_encryption_key(enc_key: str | bytes) -> bytes:
    """
    Validate and convert the token encryption key to 32 raw bytes.

    Args:
        enc_key: Base64-encoded key string or raw bytes

    Returns:
        32-byte AES-256 key

    Raises:
        ValueError: If the key is not valid base64 or not 32 bytes long
    """
    if isinstance(enc_key, str):
        try:
            key = base64.b64decode(enc_key, validate=True)
        except ValueError as e:
            raise ValueError(f"Encryption key must be base64-encoded. {_KEY_HINT}") from e
    else:
        key = enc_key

    if len(key) != 32:
        raise ValueError(
            f"Encryption key must be exactly 32 bytes, got {len(key)} bytes. {_KEY_HINT}"
        )
    return key


def encrypt_token(key: bytes, plaintext: str) -> bytes:
    """
    Encrypt a token string.

    Returns:
        Nonce followed by ciphertext
    """
    nonce = os.urandom(NONCE_SIZE)
    return nonce + AESGCM(validate_encryption_key(key)).encrypt(
        nonce, plaintext.encode("utf-8"), None
    )


def decrypt_token(key: bytes, blob: bytes) -> str:
    """
    Decrypt a blob produced by :func:`encrypt_token`.

    Raises:
        ValueError: If the key or blob is malformed
        cryptography.exceptions.InvalidTag: If the blob was tampered with
            or encrypted under another key
    """
    if len(blob) < NONCE_SIZE:
        raise ValueError("Encrypted blob too short (must include 12-byte nonce)")

    aes = AESGCM(validate_encryption_key(key))
    return aes.decrypt(blob[:NONCE_SIZE], blob[NONCE_SIZE:], None).decode("utf-8")
