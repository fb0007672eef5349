
from __future__ import annotations

"""Central exception hierarchy.

Encryption and decryption failures live in two families so callers can tell
which direction failed. Caller-input problems are ``ValueError`` subclasses and
are raised before any cryptographic work starts.
"""


class GroupCryptError(Exception):
    """Base exception for all failures"""

    description = "An unknown error occurred"
    recovery_suggestion = ""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.description)


# ---------- Encryption side ----------
class EncryptionError(GroupCryptError):
    """Raised when a file could not be sealed into an envelope"""


class FailedToEncryptData(EncryptionError):
    description = "Failed to encrypt file data"
    recovery_suggestion = "There was a cipher error when trying to encrypt the data."


class FailedToCreateSignature(EncryptionError):
    description = "Failed to create signature"
    recovery_suggestion = "The file signature could not be created. The file may be too big."


# ---------- Decryption side ----------
class DecryptionError(GroupCryptError):
    """Raised when an envelope could not be opened"""


class MalformedFile(DecryptionError):
    description = "Malformed file"
    recovery_suggestion = "The file was corrupted and is now unsalvageable."


class FileWasTamperedWith(DecryptionError):
    description = "Signature mismatch"
    recovery_suggestion = (
        "The signature of the file does not match the data. The file could've been "
        "tampered with or the wrong file owner was provided."
    )


class InsufficientPermissions(DecryptionError):
    description = "Insufficient permissions"
    recovery_suggestion = "It looks like you aren't in the secure group of the user that encrypted this file."


class UnableToWriteFile(EncryptionError, DecryptionError):
    description = "Unable to write to destination"
    recovery_suggestion = (
        "The selected destination might not exist anymore, your computer could be out "
        "of storage, or the permissions might have changed."
    )


# ---------- Caller input ----------
class InputValidationError(GroupCryptError, ValueError):
    """Raised when caller-supplied input is rejected before any crypto runs"""

    description = "Invalid input"


class InvalidUsername(InputValidationError):
    description = "Invalid username"
    recovery_suggestion = "Usernames must be 1 to 82 bytes long and must not contain spaces."


class DuplicateRecipient(InputValidationError):
    description = "Duplicate recipient"
    recovery_suggestion = "Two recipients share a name but have different keys. Remove one of them."


class EmptyRecipientSet(InputValidationError):
    description = "No recipients"
    recovery_suggestion = "Add at least one recipient, including yourself to keep access."


class InvalidDestination(InputValidationError):
    description = "Invalid destination"
    recovery_suggestion = "The destination must be an existing folder."


class UnreadableInput(InputValidationError):
    description = "Unable to read file"
    recovery_suggestion = "Check that the file exists and that you have permission to read it."


# ---------- Key custody ----------
class KeyCustodyError(GroupCryptError):
    """Raised for key storage, import and export failures"""


class KeyImportError(KeyCustodyError):
    description = "Invalid certificate"
    recovery_suggestion = "Check the integrity of the file. It must be a PEM encoded RSA public key."


class KeyExportError(KeyCustodyError):
    description = "Invalid key"
    recovery_suggestion = "Could not export specified key to a pem cert."


class KeyNotFound(KeyCustodyError):
    description = "Key not found"
    recovery_suggestion = "Run `groupcrypt keygen` or add the recipient's certificate first."


class InvalidPassphrase(KeyCustodyError):
    description = "Invalid passphrase"
    recovery_suggestion = "The passphrase does not unlock the stored private key."


class CorruptKeyStore(KeyCustodyError):
    description = "Corrupted key store"
    recovery_suggestion = "The stored private key could not be read. Restore it from a backup or create a new identity."


__all__ = [
    "GroupCryptError",
    "EncryptionError",
    "FailedToEncryptData",
    "FailedToCreateSignature",
    "DecryptionError",
    "MalformedFile",
    "FileWasTamperedWith",
    "InsufficientPermissions",
    "UnableToWriteFile",
    "InputValidationError",
    "InvalidUsername",
    "DuplicateRecipient",
    "EmptyRecipientSet",
    "InvalidDestination",
    "UnreadableInput",
    "KeyCustodyError",
    "KeyImportError",
    "KeyExportError",
    "KeyNotFound",
    "InvalidPassphrase",
    "CorruptKeyStore",
]
