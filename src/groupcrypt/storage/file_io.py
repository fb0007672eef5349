
from __future__ import annotations

import os
import tempfile
from pathlib import Path

from ..core.exceptions import InvalidDestination, UnableToWriteFile, UnreadableInput


def require_directory(destination: Path) -> Path:
    if not destination.is_dir():
        raise InvalidDestination(f"Destination {destination} is not an existing folder")
    return destination


def read_input(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise UnreadableInput(f"Could not read {path}: {exc.strerror or exc}") from exc


def is_envelope_path(path: Path, protocol_extension: str) -> bool:
    return path.suffix == f".{protocol_extension}"


def encrypted_output_path(source: Path, destination: Path, protocol_extension: str) -> Path:
    """Keep the original extension inside the name so decryption can restore it"""
    return destination / f"{source.name}.{protocol_extension}"


def decrypted_output_path(source: Path, destination: Path, fallback_extension: str) -> Path:
    stem = Path(source.name).stem if Path(source.name).suffix else source.name
    output = destination / stem
    if not output.suffix:
        output = output.with_name(f"{output.name}.{fallback_extension}")
    return output


def write_output(path: Path, data: bytes) -> Path:
    """Write ``data`` via a temporary sibling so a failure never leaves a partial file."""
    tmp_name = None
    try:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".part")
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        os.replace(tmp_name, path)
    except OSError as exc:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise UnableToWriteFile(f"Could not write {path}: {exc.strerror or exc}") from exc
    return path


__all__ = [
    "decrypted_output_path",
    "encrypted_output_path",
    "is_envelope_path",
    "read_input",
    "require_directory",
    "write_output",
]
