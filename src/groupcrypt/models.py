# Recipients, the local identity and the ordered recipient set.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Iterator, Optional

from cryptography.hazmat.primitives.asymmetric import rsa

from .core.exceptions import DuplicateRecipient, InvalidUsername
from .crypto.asymmetric import public_fingerprint

if TYPE_CHECKING:
    from .services.key_manager import KeyProvider

MAX_NAME_BYTES = 82


def validate_username(name: str) -> str:
    if not name:
        raise InvalidUsername("Username must not be empty")
    if " " in name:
        raise InvalidUsername("Username must not contain spaces")
    if "\n" in name or "\r" in name:
        raise InvalidUsername("Username must be a single line")
    if len(name.encode("utf-8")) > MAX_NAME_BYTES:
        raise InvalidUsername(f"The maximum length of a username is {MAX_NAME_BYTES} bytes")
    return name


@dataclass(frozen=True, slots=True)
class Recipient:
    """A named public key that may open an envelope"""

    name: str
    public_key: rsa.RSAPublicKey = field(compare=False, repr=False)
    fingerprint: str = field(init=False)

    def __post_init__(self) -> None:
        validate_username(self.name)
        if not isinstance(self.public_key, rsa.RSAPublicKey):
            raise TypeError(f"Recipient {self.name} needs an RSA public key")
        object.__setattr__(self, "fingerprint", public_fingerprint(self.public_key))


@dataclass(frozen=True, slots=True)
class LocalUser:
    """The acting identity: a name plus the provider holding its private key"""

    name: str
    provider: "KeyProvider" = field(compare=False, repr=False)

    def __post_init__(self) -> None:
        validate_username(self.name)

    def as_recipient(self) -> Recipient:
        return Recipient(name=self.name, public_key=self.provider.public_key)


class RecipientSet:
    """Insertion-ordered recipients, unique by name.

    Re-adding the same name with the same key is a no-op; the same name with a
    different key raises ``DuplicateRecipient``.
    """

    def __init__(self, recipients: Optional[Iterable[Recipient]] = None) -> None:
        self._by_name: dict[str, Recipient] = {}
        for recipient in recipients or ():
            self.add(recipient)

    def add(self, recipient: Recipient) -> None:
        existing = self._by_name.get(recipient.name)
        if existing is None:
            self._by_name[recipient.name] = recipient
            return
        if existing.fingerprint != recipient.fingerprint:
            raise DuplicateRecipient(
                f"Recipient {recipient.name} appears twice with different keys"
            )

    def names(self) -> list[str]:
        return list(self._by_name)

    def __iter__(self) -> Iterator[Recipient]:
        return iter(list(self._by_name.values()))

    def __len__(self) -> int:
        return len(self._by_name)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, Recipient):
            existing = self._by_name.get(item.name)
            return existing is not None and existing.fingerprint == item.fingerprint
        if isinstance(item, str):
            return item in self._by_name
        return False

    def __repr__(self) -> str:
        return f"RecipientSet({self.names()!r})"


__all__ = ["MAX_NAME_BYTES", "LocalUser", "Recipient", "RecipientSet", "validate_username"]
