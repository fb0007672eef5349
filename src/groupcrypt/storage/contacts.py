from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, List, Optional

import structlog

from ..config import CONFIG
from ..core.exceptions import InvalidUsername, KeyImportError, KeyNotFound
from ..crypto import asymmetric as asy
from ..models import Recipient, RecipientSet, validate_username
from ..paths import PathResolver
from ..services.key_manager import KeyProvider

logger = structlog.get_logger(__name__)


class ContactBook:
    """Recipient certificates received out-of-band, plus named groups.

    Certificates live at ``contacts/<name>.pem``. Groups are kept in
    ``meta/recipients.json``::

        {"groups": {"eng": ["alice", "bob"]}}
    """

    def __init__(self, root: Optional[Path | str] = None, min_key_bits: int | None = None) -> None:
        self.paths = PathResolver(Path(root) if root else CONFIG.store_dir)
        self.paths.ensure()
        self.min_key_bits = min_key_bits or CONFIG.crypto.min_rsa_key_bits

    def _cert_path(self, name: str) -> Path:
        validate_username(name)
        if "/" in name or "\\" in name or name in (".", ".."):
            raise InvalidUsername(f"Recipient name {name!r} cannot be stored as a contact")
        return self.paths.contacts / f"{name}.pem"

    def add(self, name: str, pem: bytes) -> Recipient:
        path = self._cert_path(name)
        public_key = KeyProvider.import_public_key(pem)
        if public_key.key_size < self.min_key_bits:
            raise KeyImportError(
                f"Unsupported certificate: {public_key.key_size}-bit key, at least {self.min_key_bits} required"
            )
        recipient = Recipient(name=name, public_key=public_key)
        path.write_bytes(asy.rsa_public_bytes(public_key))
        logger.info("contacts.added", name=name, fingerprint=recipient.fingerprint)
        return recipient

    def remove(self, name: str) -> None:
        path = self._cert_path(name)
        if not path.exists():
            raise KeyNotFound(f"No contact named {name}")
        path.unlink()
        groups = self.groups()
        for members in groups.values():
            if name in members:
                members.remove(name)
        self._save_groups(groups)
        logger.info("contacts.removed", name=name)

    def get(self, name: str) -> Recipient:
        path = self._cert_path(name)
        if not path.exists():
            raise KeyNotFound(f"No contact named {name}")
        return Recipient(name=name, public_key=KeyProvider.import_public_key(path.read_bytes()))

    def list_contacts(self) -> List[Recipient]:
        return [self.get(path.stem) for path in sorted(self.paths.contacts.glob("*.pem")) if path.is_file()]

    # ----- Groups -----
    def groups(self) -> dict[str, list[str]]:
        data = json.loads(self.paths.groups.read_text(encoding="utf-8"))
        return {name: list(members) for name, members in data.get("groups", {}).items()}

    def set_group(self, group: str, members: Iterable[str]) -> None:
        members = list(members)
        for name in members:
            if not self._cert_path(name).exists():
                raise KeyNotFound(f"No contact named {name}")
        groups = self.groups()
        groups[group] = members
        self._save_groups(groups)

    def _save_groups(self, groups: dict[str, list[str]]) -> None:
        self.paths.groups.write_text(json.dumps({"groups": groups}, indent=2), encoding="utf-8")

    def resolve(self, entries: Iterable[str]) -> RecipientSet:
        """Resolve names and ``group:NAME`` entries into an ordered recipient set."""
        groups = self.groups()
        names: list[str] = []
        for entry in entries:
            if entry.startswith("group:"):
                group = entry.split(":", 1)[1]
                if group not in groups:
                    raise KeyNotFound(f"No group named {group}")
                names.extend(groups[group])
            else:
                names.append(entry)
        # de-duplicate while preserving order
        seen = set()
        result = RecipientSet()
        for name in names:
            if name not in seen:
                result.add(self.get(name))
                seen.add(name)
        return result


__all__ = ["ContactBook"]
