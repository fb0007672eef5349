import pytest
from cryptography.hazmat.primitives.asymmetric import ed25519

from groupcrypt.core.exceptions import DuplicateRecipient, InvalidUsername
from groupcrypt.models import MAX_NAME_BYTES, Recipient, RecipientSet, validate_username


@pytest.mark.parametrize("name", ["alice", "a" * MAX_NAME_BYTES, "é" * 41, "ops-team_2"])
def test_valid_usernames(name: str) -> None:
    assert validate_username(name) == name


@pytest.mark.parametrize("name", ["", "alice smith", "a" * 83, "é" * 42, "bob\n"])
def test_invalid_usernames(name: str) -> None:
    with pytest.raises(InvalidUsername):
        validate_username(name)


def test_invalid_username_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        validate_username("has space")


def test_recipient_requires_rsa_key() -> None:
    with pytest.raises(TypeError):
        Recipient(name="eve", public_key=ed25519.Ed25519PrivateKey.generate().public_key())


def test_recipient_fingerprint_is_stable(bob) -> None:
    first = bob.as_recipient()
    second = Recipient(name="bob", public_key=bob.provider.public_key)
    assert first.fingerprint == second.fingerprint
    assert len(first.fingerprint) == 64


def test_recipient_set_keeps_order_and_ignores_exact_duplicates(alice, bob, carol) -> None:
    members = RecipientSet([carol.as_recipient(), alice.as_recipient()])
    members.add(bob.as_recipient())
    members.add(alice.as_recipient())
    assert members.names() == ["carol", "alice", "bob"]
    assert len(members) == 3
    assert "bob" in members
    assert alice.as_recipient() in members


def test_recipient_set_rejects_conflicting_keys(alice, bob) -> None:
    members = RecipientSet([alice.as_recipient()])
    impostor = Recipient(name="alice", public_key=bob.provider.public_key)
    assert impostor not in members
    with pytest.raises(DuplicateRecipient):
        members.add(impostor)
