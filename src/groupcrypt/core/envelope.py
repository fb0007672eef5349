"""Envelope codec: line-armoured framing, base64 transport and the signature line.

Layout, one item per LF-separated line::

    <base64 signature>
    =======================ALLOWED USERS=======================
    <base64 wrapped key>            (one per recipient)
    ============================END============================
    <base64 sealed content>

The signature covers everything after the first LF. Nothing follows the sealed
content line, not even a newline.

``parse`` only checks the framing needed to locate the signed region. Payload
lines stay raw bytes, and the single-trailer rule is enforced by
``EnvelopeParts.sealed_content`` once the caller has verified the signature, so
any change inside the signed region reports as a signature mismatch.
"""

from __future__ import annotations

import binascii
from dataclasses import dataclass, field
from typing import Callable, Final, Sequence

from ..utils import b64d, b64e
from .exceptions import MalformedFile

LINE_BREAK: Final[bytes] = b"\n"
HEADER_START_MARKER: Final[bytes] = b"=======================ALLOWED USERS======================="
HEADER_END_MARKER: Final[bytes] = b"============================END============================"


@dataclass(slots=True)
class EnvelopeParts:
    signature: bytes
    signed_region: bytes
    wrapped_key_lines: list[bytes] = field(default_factory=list)
    trailer_lines: list[bytes] = field(default_factory=list)

    def sealed_content(self) -> bytes:
        """Return the single line after the end marker; call only after verification."""
        if len(self.trailer_lines) != 1:
            raise MalformedFile(f"Expected exactly one line after the header, found {len(self.trailer_lines)}")
        line = self.trailer_lines[0]
        if not line:
            raise MalformedFile("Sealed content line is empty")
        return line


def _ascii_line(line: str, what: str) -> bytes:
    try:
        encoded = line.encode("ascii")
    except UnicodeEncodeError as exc:
        raise ValueError(f"{what} must be ASCII") from exc
    if LINE_BREAK in encoded or not encoded:
        raise ValueError(f"{what} must be a single non-empty line")
    return encoded


def build_signed_region(wrapped_key_lines: Sequence[str], sealed_content_line: str) -> bytes:
    parts = [HEADER_START_MARKER]
    parts.extend(_ascii_line(line, "Wrapped key line") for line in wrapped_key_lines)
    parts.append(HEADER_END_MARKER)
    parts.append(_ascii_line(sealed_content_line, "Sealed content line"))
    return LINE_BREAK.join(parts)


def serialize(
    sign: Callable[[bytes], bytes],
    wrapped_key_lines: Sequence[str],
    sealed_content_line: str,
) -> bytes:
    """Frame the records, sign the framed body and prepend the signature line."""
    region = build_signed_region(wrapped_key_lines, sealed_content_line)
    signature = sign(region)
    return b64e(signature).encode("ascii") + LINE_BREAK + region


def parse(data: bytes) -> EnvelopeParts:
    """Split an envelope into signature, wrapped key lines and the trailer.

    Only the framing around the signed region is checked here: the signature
    line, the start marker and the end marker.
    """
    signature_line, sep, region = data.partition(LINE_BREAK)
    if not sep:
        raise MalformedFile("Envelope has no signature line")
    if not signature_line:
        raise MalformedFile("Signature line is empty")
    try:
        signature = b64d(signature_line)
    except (binascii.Error, ValueError) as exc:
        raise MalformedFile("First line of file is not a base64 encoded signature") from exc

    lines = region.split(LINE_BREAK)
    if lines[0] != HEADER_START_MARKER:
        raise MalformedFile("Second line of file is not the header start marker")

    try:
        end_index = lines.index(HEADER_END_MARKER, 1)
    except ValueError:
        raise MalformedFile("Header was never closed") from None

    return EnvelopeParts(
        signature=signature,
        signed_region=region,
        wrapped_key_lines=lines[1:end_index],
        trailer_lines=lines[end_index + 1 :],
    )


__all__ = [
    "EnvelopeParts",
    "HEADER_END_MARKER",
    "HEADER_START_MARKER",
    "LINE_BREAK",
    "build_signed_region",
    "parse",
    "serialize",
]
