# Verify and open an envelope as one of its recipients.
from __future__ import annotations

import binascii
import time
from pathlib import Path

import structlog

from ..config import CONFIG, AppConfig
from ..core import envelope
from ..core.exceptions import FileWasTamperedWith, GroupCryptError, MalformedFile
from ..crypto.symmetric import open_sealed
from ..models import LocalUser, Recipient
from ..storage.file_io import decrypted_output_path, read_input, require_directory, write_output
from ..utils import b64d
from .keywrap import recover_file_key

logger = structlog.get_logger(__name__)


class EnvelopeDecryptor:
    def __init__(self, user: LocalUser, config: AppConfig | None = None) -> None:
        self.user = user
        self.config = config or CONFIG

    def decrypt_bytes(self, data: bytes, owner: Recipient) -> bytes:
        """Return the plaintext of an envelope sealed by ``owner``.

        Order matters: structure is checked first, then the owner's signature,
        and only a verified envelope is searched for the user's wrapped key.
        """
        try:
            return self._open(data, owner)
        except GroupCryptError:
            raise
        except Exception:
            logger.exception("envelope.decrypt.unexpected", owner=owner.name, user=self.user.name, size=len(data))
            raise

    def _open(self, data: bytes, owner: Recipient) -> bytes:
        parts = envelope.parse(data)
        provider = self.user.provider

        try:
            provider.verify(owner.public_key, parts.signature, parts.signed_region)
        except FileWasTamperedWith:
            logger.warning("envelope.signature.mismatch", owner=owner.name, owner_fingerprint=owner.fingerprint)
            raise

        sealed_line = parts.sealed_content()
        file_key = recover_file_key(
            provider,
            self.user.name,
            parts.wrapped_key_lines,
            exhaustive=self.config.crypto.exhaustive_key_search,
        )

        try:
            combined = b64d(sealed_line)
        except (binascii.Error, ValueError) as exc:
            raise MalformedFile("Sealed content line is not valid base64") from exc
        return open_sealed(file_key, combined)

    def decrypt_file(self, input_path: Path, destination: Path, owner: Recipient) -> Path:
        """Decrypt ``input_path`` into ``destination`` and return the plaintext path."""
        require_directory(destination)
        data = read_input(input_path)
        output = decrypted_output_path(input_path, destination, self.config.crypto.fallback_extension)

        started = time.perf_counter()
        logger.info("envelope.decrypt.start", path=str(input_path), owner=owner.name, user=self.user.name)
        plaintext = self.decrypt_bytes(data, owner)
        write_output(output, plaintext)
        logger.info(
            "envelope.decrypt.done",
            path=str(output),
            size=len(plaintext),
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return output


__all__ = ["EnvelopeDecryptor"]
