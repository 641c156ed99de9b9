from functools import lru_cache
import hashlib
import os
import re

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from app.core.config import settings
from app.core.exceptions import CipherError, MalformedTokenError

IV_LENGTH = 16
KEY_LENGTH = 32
PBKDF2_ITERATIONS = 100_000
TOKEN_SEPARATOR = ":"
HEX_PATTERN = re.compile(r"[0-9a-fA-F]*")


# ---------- KEY DERIVATION ----------

@lru_cache(maxsize=8)
def derive_key(pepper: str, salt: str) -> bytes:
    """
    PBKDF2-HMAC-SHA512 (100k rounds) → 32-byte AES-256 key
    """
    return PBKDF2HMAC(
        algorithm=hashes.SHA512(),
        length=KEY_LENGTH,
        salt=salt.encode("utf-8"),
        iterations=PBKDF2_ITERATIONS,
    ).derive(pepper.encode("utf-8"))


def get_key() -> bytes:
    """Process-wide key derived from the configured pepper and salt."""
    return derive_key(settings.ENCRYPTION_PEPPER, settings.ENCRYPTION_SALT)


# ---------- SEALED FIELDS ----------

def encrypt_field(plaintext: str, key: bytes | None = None) -> str:
    """
    AES-256-CBC with a fresh IV → "<iv hex>:<ciphertext hex>"
    """
    key = key or get_key()
    iv = os.urandom(IV_LENGTH)

    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return iv.hex() + TOKEN_SEPARATOR + ciphertext.hex()


def decrypt_field(token: str, key: bytes | None = None) -> str:
    """
    Open a token produced by encrypt_field.

    Raises MalformedTokenError when the token is not `iv:ciphertext` hex,
    CipherError when the ciphertext does not open under the key.
    """
    if not isinstance(token, str):
        raise MalformedTokenError("Sealed field is not a string")

    iv_hex, separator, ciphertext_hex = token.partition(TOKEN_SEPARATOR)
    if not separator:
        raise MalformedTokenError("Sealed field has no IV separator")
    # bytes.fromhex alone would accept whitespace between pairs
    if not (HEX_PATTERN.fullmatch(iv_hex) and HEX_PATTERN.fullmatch(ciphertext_hex)):
        raise MalformedTokenError("Sealed field is not valid hex")
    try:
        iv = bytes.fromhex(iv_hex)
        ciphertext = bytes.fromhex(ciphertext_hex)
    except ValueError as exc:
        raise MalformedTokenError("Sealed field is not valid hex") from exc
    if len(iv) != IV_LENGTH:
        raise MalformedTokenError("Sealed field has a bad IV length")

    block_bytes = algorithms.AES.block_size // 8
    if not ciphertext or len(ciphertext) % block_bytes:
        raise CipherError("Ciphertext is truncated")

    key = key or get_key()
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()

    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
    try:
        plaintext = unpadder.update(padded) + unpadder.finalize()
        return plaintext.decode("utf-8")
    except (ValueError, UnicodeDecodeError) as exc:
        raise CipherError("Ciphertext did not decrypt") from exc


# ---------- RECIPIENT LOOKUP ----------

def hash_recipient_code(code: str) -> str:
    """
    Unsalted SHA-256 of the lowercased anon code, hex encoded.

    Lookup has to be reproducible from the code alone, so short or common
    codes can be recovered from a leaked store by dictionary guessing.
    """
    return hashlib.sha256(code.lower().encode("utf-8")).hexdigest()
