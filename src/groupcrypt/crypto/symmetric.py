
from __future__ import annotations

import os
from typing import Final

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from ..core.exceptions import FailedToEncryptData, MalformedFile

KEY_SIZE: Final[int] = 32  #* 256-bit
NONCE_SIZE: Final[int] = 12
TAG_SIZE: Final[int] = 16


def generate_file_key() -> bytes:
    return os.urandom(KEY_SIZE)


class ChaCha20:
    """ChaCha20-Poly1305 over a single message, combined as nonce || ciphertext || tag"""

    def __init__(self, key: bytes) -> None:
        if len(key) != KEY_SIZE:
            raise ValueError("ChaCha20-Poly1305 requires a 32-byte key")
        self._aead = ChaCha20Poly1305(key)

    @staticmethod
    def gen_nonce() -> bytes:
        return os.urandom(NONCE_SIZE)

    def seal(self, plaintext: bytes) -> bytes:
        nonce = self.gen_nonce()
        return nonce + self._aead.encrypt(nonce, plaintext, None)

    def open(self, combined: bytes) -> bytes:
        if len(combined) < NONCE_SIZE + TAG_SIZE:
            raise MalformedFile("Sealed content is shorter than nonce and tag")
        nonce, ciphertext = combined[:NONCE_SIZE], combined[NONCE_SIZE:]
        try:
            return self._aead.decrypt(nonce, ciphertext, None)
        except InvalidTag as exc:
            raise MalformedFile("AEAD tag verification failed") from exc


def seal(key: bytes, plaintext: bytes) -> bytes:
    try:
        return ChaCha20(key).seal(plaintext)
    except (ValueError, OverflowError) as exc:
        raise FailedToEncryptData(f"Sealing failed: {exc}") from exc


def open_sealed(key: bytes, combined: bytes) -> bytes:
    try:
        cipher = ChaCha20(key)
    except ValueError as exc:
        raise MalformedFile(f"Recovered file key is unusable: {exc}") from exc
    return cipher.open(combined)


__all__ = ["KEY_SIZE", "NONCE_SIZE", "TAG_SIZE", "ChaCha20", "generate_file_key", "open_sealed", "seal"]
