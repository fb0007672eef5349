"""groupcrypt: signed envelope encryption for a group of named recipients."""
from __future__ import annotations

from .core.exceptions import (
    DecryptionError,
    EncryptionError,
    FileWasTamperedWith,
    GroupCryptError,
    InsufficientPermissions,
    MalformedFile,
)
from .models import LocalUser, Recipient, RecipientSet
from .services.decryptor import EnvelopeDecryptor
from .services.encryptor import EnvelopeEncryptor
from .services.key_manager import KeyManager, KeyProvider, RsaKeyProvider
from .version import __version__

__all__ = [
    "DecryptionError",
    "EncryptionError",
    "EnvelopeDecryptor",
    "EnvelopeEncryptor",
    "FileWasTamperedWith",
    "GroupCryptError",
    "InsufficientPermissions",
    "KeyManager",
    "KeyProvider",
    "LocalUser",
    "MalformedFile",
    "Recipient",
    "RecipientSet",
    "RsaKeyProvider",
    "__version__",
]
