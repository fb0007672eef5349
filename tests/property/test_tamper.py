from __future__ import annotations

import pytest
from hypothesis import HealthCheck, given, settings, strategies as st

from groupcrypt.core import envelope
from groupcrypt.core.exceptions import FileWasTamperedWith, MalformedFile
from groupcrypt.models import LocalUser
from groupcrypt.services.decryptor import EnvelopeDecryptor
from groupcrypt.services.encryptor import EnvelopeEncryptor
from groupcrypt.services.key_manager import KeyProvider, RsaKeyProvider

_alice = LocalUser(name="alice", provider=RsaKeyProvider.generate(3072))
_bob = LocalUser(name="bob", provider=RsaKeyProvider.generate(3072))
_sealed = EnvelopeEncryptor(_alice).encrypt_bytes(
    b"the payroll spreadsheet", [_alice.as_recipient(), _bob.as_recipient()]
)


def _payload_offsets(data: bytes) -> list[int]:
    """Byte offsets inside wrapped key lines and the sealed content line"""
    offsets: list[int] = []
    position = 0
    for line in data.split(b"\n"):
        if line and line not in (envelope.HEADER_START_MARKER, envelope.HEADER_END_MARKER) and position:
            offsets.extend(range(position, position + len(line)))
        position += len(line) + 1
    return offsets


_OFFSETS = _payload_offsets(_sealed)


class RecordingProvider(KeyProvider):
    def __init__(self, inner: RsaKeyProvider) -> None:
        self.inner = inner
        self.calls: list[str] = []

    @property
    def public_key(self):
        return self.inner.public_key

    @property
    def block_size(self) -> int:
        return self.inner.block_size

    def generate_or_load_keypair(self):
        return self.inner.public_key, self

    def sign(self, data: bytes) -> bytes:
        self.calls.append("sign")
        return self.inner.sign(data)

    def unwrap(self, ciphertext: bytes) -> bytes:
        self.calls.append("unwrap")
        return self.inner.unwrap(ciphertext)

    def verify(self, public_key, signature: bytes, data: bytes) -> None:
        self.calls.append("verify")
        super().verify(public_key, signature, data)


@settings(max_examples=60, deadline=None, suppress_health_check=[HealthCheck.too_slow])
@given(st.sampled_from(_OFFSETS), st.integers(min_value=0, max_value=255))
def test_any_payload_byte_value_is_a_signature_mismatch(offset: int, value: int) -> None:
    if _sealed[offset] == value:
        value ^= 0x01
    tampered = bytearray(_sealed)
    tampered[offset] = value
    with pytest.raises(FileWasTamperedWith):
        EnvelopeDecryptor(_bob).decrypt_bytes(bytes(tampered), _alice.as_recipient())


@pytest.mark.parametrize("mask", [0x80, 0xFF])
def test_high_bit_in_sealed_line_is_a_signature_mismatch(mask: int) -> None:
    tampered = bytearray(_sealed)
    tampered[_sealed.rindex(b"\n") + 6] ^= mask
    with pytest.raises(FileWasTamperedWith):
        EnvelopeDecryptor(_bob).decrypt_bytes(bytes(tampered), _alice.as_recipient())


@pytest.mark.parametrize("which", ["sealed", "wrapped"])
def test_line_break_written_into_payload_is_a_signature_mismatch(which: str) -> None:
    tampered = bytearray(_sealed)
    if which == "sealed":
        offset = _sealed.rindex(b"\n") + 6
    else:
        offset = _sealed.index(envelope.HEADER_START_MARKER) + len(envelope.HEADER_START_MARKER) + 6
    tampered[offset] = 0x0A
    with pytest.raises(FileWasTamperedWith):
        EnvelopeDecryptor(_bob).decrypt_bytes(bytes(tampered), _alice.as_recipient())


@settings(max_examples=30, deadline=None)
@given(st.sampled_from(_OFFSETS))
def test_single_bit_flip_is_a_signature_mismatch(offset: int) -> None:
    tampered = bytearray(_sealed)
    tampered[offset] ^= 0x01
    with pytest.raises(FileWasTamperedWith):
        EnvelopeDecryptor(_bob).decrypt_bytes(bytes(tampered), _alice.as_recipient())


def test_truncated_sealed_line_is_detected() -> None:
    with pytest.raises(FileWasTamperedWith):
        EnvelopeDecryptor(_bob).decrypt_bytes(_sealed[:-4], _alice.as_recipient())


def test_dropping_a_recipient_line_is_detected() -> None:
    lines = _sealed.split(b"\n")
    del lines[2]
    with pytest.raises(FileWasTamperedWith):
        EnvelopeDecryptor(_bob).decrypt_bytes(b"\n".join(lines), _alice.as_recipient())


def test_structure_is_checked_before_any_key_operation() -> None:
    spy = RecordingProvider(_bob.provider)
    user = LocalUser(name="bob", provider=spy)
    broken = _sealed.replace(envelope.HEADER_START_MARKER, b"=" * 59)
    with pytest.raises(MalformedFile):
        EnvelopeDecryptor(user).decrypt_bytes(broken, _alice.as_recipient())
    assert spy.calls == []


def test_signature_is_checked_before_key_search() -> None:
    spy = RecordingProvider(_bob.provider)
    user = LocalUser(name="bob", provider=spy)
    tampered = bytearray(_sealed)
    tampered[_OFFSETS[-1]] ^= 0x01
    with pytest.raises(FileWasTamperedWith):
        EnvelopeDecryptor(user).decrypt_bytes(bytes(tampered), _alice.as_recipient())
    assert spy.calls == ["verify"]


def test_untouched_envelope_verifies_then_unwraps() -> None:
    spy = RecordingProvider(_bob.provider)
    user = LocalUser(name="bob", provider=spy)
    assert EnvelopeDecryptor(user).decrypt_bytes(_sealed, _alice.as_recipient()) == b"the payroll spreadsheet"
    assert spy.calls[0] == "verify"
    assert "unwrap" in spy.calls
