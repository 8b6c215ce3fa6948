"""Symmetric encryption of file contents (AES-256-CBC, PKCS#7 padding).

The key is an explicit ``KeyMaterial`` value built once at startup and handed
to ``CipherUnit``. Each encryption draws a fresh random IV; the IV is stored
next to the file record and is required to decrypt.
"""
from dataclasses import dataclass, field

from Crypto.Cipher import AES
from Crypto.Random import get_random_bytes
from Crypto.Util.Padding import pad, unpad

from filevault.errors import DecryptionError

KEY_SIZE = 32
IV_SIZE = AES.block_size


@dataclass(frozen=True)
class KeyMaterial:
    """Process-wide symmetric key. Read-only, safe to share between tasks."""

    key: bytes = field(repr=False)

    def __post_init__(self):
        if len(self.key) != KEY_SIZE:
            raise ValueError(f"Encryption key must be {KEY_SIZE} bytes, got {len(self.key)}")

    @classmethod
    def from_hex(cls, value: str) -> "KeyMaterial":
        try:
            raw = bytes.fromhex(value.strip())
        except ValueError:
            raise ValueError("Encryption key is not valid hex") from None
        return cls(raw)

    @classmethod
    def generate(cls) -> "KeyMaterial":
        return cls(get_random_bytes(KEY_SIZE))


class CipherUnit:
    """Encrypts and decrypts byte buffers. No I/O."""

    def __init__(self, key_material: KeyMaterial):
        self._key = key_material.key

    def encrypt(self, plaintext: bytes) -> tuple[bytes, bytes]:
        """Return ``(iv, ciphertext)`` using a freshly generated IV."""
        iv = get_random_bytes(IV_SIZE)
        cipher = AES.new(self._key, AES.MODE_CBC, iv=iv)
        return iv, cipher.encrypt(pad(plaintext, AES.block_size))

    def decrypt(self, iv: bytes, ciphertext: bytes) -> bytes:
        if len(iv) != IV_SIZE:
            raise DecryptionError(f"IV must be {IV_SIZE} bytes, got {len(iv)}")
        if not ciphertext or len(ciphertext) % AES.block_size:
            raise DecryptionError(
                f"Ciphertext length {len(ciphertext)} is not a positive multiple of {AES.block_size}"
            )
        cipher = AES.new(self._key, AES.MODE_CBC, iv=iv)
        try:
            return unpad(cipher.decrypt(ciphertext), AES.block_size)
        except ValueError:
            raise DecryptionError("Invalid padding after decryption") from None
