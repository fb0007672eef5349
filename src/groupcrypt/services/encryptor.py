# Seal a file for a set of recipients and sign the envelope as its owner.
from __future__ import annotations

import time
from pathlib import Path
from typing import Iterable

import structlog

from ..config import CONFIG, AppConfig
from ..core import envelope
from ..core.exceptions import EmptyRecipientSet, FailedToCreateSignature, GroupCryptError
from ..crypto.symmetric import generate_file_key, seal
from ..models import LocalUser, Recipient, RecipientSet
from ..storage.file_io import encrypted_output_path, read_input, require_directory, write_output
from ..utils import b64e
from .keywrap import wrap_file_key

logger = structlog.get_logger(__name__)


class EnvelopeEncryptor:
    """Envelope encryption: one file key, wrapped per recipient, content sealed once.

    The owner signs the envelope but is *not* added to the recipients
    implicitly; include ``owner.as_recipient()`` to keep access to the file.
    """

    def __init__(self, owner: LocalUser, config: AppConfig | None = None) -> None:
        self.owner = owner
        self.config = config or CONFIG

    @staticmethod
    def _recipient_set(recipients: Iterable[Recipient]) -> RecipientSet:
        result = recipients if isinstance(recipients, RecipientSet) else RecipientSet(recipients)
        if not len(result):
            raise EmptyRecipientSet("At least one recipient is required")
        return result

    def encrypt_bytes(self, data: bytes, recipients: Iterable[Recipient]) -> bytes:
        members = self._recipient_set(recipients)
        try:
            return self._seal(data, members)
        except GroupCryptError:
            raise
        except Exception:
            logger.exception("envelope.encrypt.unexpected", owner=self.owner.name, recipients=members.names())
            raise

    def _seal(self, data: bytes, members: RecipientSet) -> bytes:
        provider = self.owner.provider

        file_key = generate_file_key()
        wrapped_key_lines = wrap_file_key(provider, file_key, members)
        sealed_content_line = b64e(seal(file_key, data))

        try:
            return envelope.serialize(provider.sign, wrapped_key_lines, sealed_content_line)
        except FailedToCreateSignature:
            logger.error("envelope.sign.failed", owner=self.owner.name, size=len(data))
            raise

    def encrypt_file(self, input_path: Path, destination: Path, recipients: Iterable[Recipient]) -> Path:
        """Encrypt ``input_path`` into ``destination`` and return the envelope path."""
        require_directory(destination)
        members = self._recipient_set(recipients)
        data = read_input(input_path)
        output = encrypted_output_path(input_path, destination, self.config.crypto.protocol_extension)

        started = time.perf_counter()
        logger.info("envelope.encrypt.start", path=str(input_path), recipients=members.names())
        sealed = self.encrypt_bytes(data, members)
        write_output(output, sealed)
        logger.info(
            "envelope.encrypt.done",
            path=str(output),
            size=len(sealed),
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return output


__all__ = ["EnvelopeEncryptor"]
