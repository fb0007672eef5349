"""Per-recipient wrapping of the file key and the decrypt-side key search.

Each recipient gets one OAEP ciphertext of the text record
``"<name> <base64(file key)>"``. A reader does not know which line is theirs,
so decryption tries lines in file order until one unwraps to a record carrying
their own name.
"""

from __future__ import annotations

import binascii
from typing import Iterable, Optional, Sequence

import structlog

from ..core.exceptions import InsufficientPermissions, MalformedFile
from ..crypto.symmetric import KEY_SIZE
from ..models import Recipient
from ..utils import b64d, b64e, constant_time_compare
from .key_manager import KeyProvider

logger = structlog.get_logger(__name__)

RECORD_SEPARATOR = " "


def build_record(name: str, file_key: bytes) -> bytes:
    return f"{name}{RECORD_SEPARATOR}{b64e(file_key)}".encode("utf-8")


def wrap_file_key(provider: KeyProvider, file_key: bytes, recipients: Iterable[Recipient]) -> list[str]:
    lines: list[str] = []
    for recipient in recipients:
        wrapped = provider.wrap(recipient.public_key, build_record(recipient.name, file_key))
        lines.append(b64e(wrapped))
        logger.debug("keywrap.wrapped", recipient=recipient.name, fingerprint=recipient.fingerprint)
    return lines


def _parse_record(plaintext: bytes) -> Optional[tuple[str, str]]:
    try:
        text = plaintext.decode("utf-8")
    except UnicodeDecodeError:
        return None
    parts = text.split(RECORD_SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        return None
    return parts[0], parts[1]


def _decode_file_key(encoded: str) -> bytes:
    try:
        key = b64d(encoded)
    except (binascii.Error, ValueError) as exc:
        raise MalformedFile("File key in the matching record is not valid base64") from exc
    if len(key) != KEY_SIZE:
        raise MalformedFile(f"File key in the matching record is {len(key)} bytes, expected {KEY_SIZE}")
    return key


def recover_file_key(
    provider: KeyProvider,
    user_name: str,
    wrapped_key_lines: Sequence[bytes | str],
    *,
    exhaustive: bool = False,
) -> bytes:
    """Find the wrapped key line addressed to ``user_name`` and return the file key.

    By default the scan stops at the first line whose record carries the
    user's name. Another line decrypting to a valid record with the same name
    under a different key is statistically negligible, so early exit is a
    probabilistic rather than absolute guarantee. With ``exhaustive`` every line
    is tried and conflicting matches raise ``MalformedFile``.

    Lines arrive as raw bytes from the parser; one that is not ASCII base64 is
    skipped like any other line addressed to someone else.
    """
    block_size = provider.block_size
    found: Optional[bytes] = None

    for index, line in enumerate(wrapped_key_lines):
        try:
            ciphertext = b64d(line)
        except (binascii.Error, ValueError):
            logger.debug("keywrap.skip", line=index, reason="not_base64")
            continue
        if len(ciphertext) != block_size:
            logger.debug("keywrap.skip", line=index, reason="block_size", size=len(ciphertext))
            continue
        try:
            plaintext = provider.unwrap(ciphertext)
        except ValueError:
            logger.debug("keywrap.skip", line=index, reason="unwrap_failed")
            continue

        record = _parse_record(plaintext)
        if record is None:
            logger.debug("keywrap.skip", line=index, reason="garbled_record")
            continue
        name, encoded_key = record
        if not constant_time_compare(name, user_name):
            logger.debug("keywrap.skip", line=index, reason="name_mismatch")
            continue

        key = _decode_file_key(encoded_key)
        logger.debug("keywrap.match", line=index)
        if not exhaustive:
            return key
        if found is not None and not constant_time_compare(found, key):
            raise MalformedFile(f"More than one wrapped key line is addressed to {user_name}")
        found = key

    if found is None:
        raise InsufficientPermissions(f"No wrapped key line is addressed to {user_name}")
    return found


__all__ = ["RECORD_SEPARATOR", "build_record", "recover_file_key", "wrap_file_key"]
