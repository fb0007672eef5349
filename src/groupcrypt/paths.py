"""Shared filesystem path helpers for groupcrypt."""
from __future__ import annotations

import sys
from pathlib import Path

from platformdirs import PlatformDirs

_APP_NAME = "GroupCrypt"
_LINUX_APP_NAME = "groupcrypt"


def _dirs() -> PlatformDirs:
    if sys.platform in ("win32", "darwin"):
        return PlatformDirs(appname=_APP_NAME, appauthor=None, roaming=True)
    return PlatformDirs(appname=_LINUX_APP_NAME, appauthor=None, roaming=False)


def runtime_config_dir() -> Path:
    """Return the per-user configuration directory."""
    return Path(_dirs().user_config_path)


def default_store_dir() -> Path:
    """Return the per-user data directory holding keys and contacts."""
    return Path(_dirs().user_data_path)


class PathResolver:
    """Compute and ensure paths for the key store, contacts and metadata"""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.identity = root / "identity"
        self.contacts = root / "contacts"
        self.meta = root / "meta"
        self.public_key = self.identity / "public.pem"
        self.private_key = self.identity / "private.enc"
        self.identity_info = self.identity / "identity.json"
        self.groups = self.meta / "recipients.json"

    def ensure(self) -> None:
        self.identity.mkdir(parents=True, exist_ok=True)
        self.contacts.mkdir(parents=True, exist_ok=True)
        self.meta.mkdir(parents=True, exist_ok=True)
        if not self.groups.exists():
            self.groups.write_text('{"groups": {}}', encoding="utf-8")


__all__ = ["PathResolver", "default_store_dir", "runtime_config_dir"]
