import pytest

from groupcrypt.core.exceptions import FailedToEncryptData, MalformedFile
from groupcrypt.crypto.symmetric import KEY_SIZE, NONCE_SIZE, TAG_SIZE, generate_file_key, open_sealed, seal


def test_seal_layout() -> None:
    key = generate_file_key()
    combined = seal(key, b"hello")
    assert len(combined) == NONCE_SIZE + len(b"hello") + TAG_SIZE
    assert open_sealed(key, combined) == b"hello"


def test_fresh_nonce_per_seal() -> None:
    key = generate_file_key()
    assert seal(key, b"same")[:NONCE_SIZE] != seal(key, b"same")[:NONCE_SIZE]


def test_wrong_key_or_modified_ciphertext() -> None:
    key = generate_file_key()
    combined = bytearray(seal(key, b"hello"))
    with pytest.raises(MalformedFile):
        open_sealed(generate_file_key(), bytes(combined))
    combined[-1] ^= 0x01
    with pytest.raises(MalformedFile):
        open_sealed(key, bytes(combined))


def test_short_input_is_malformed() -> None:
    with pytest.raises(MalformedFile):
        open_sealed(generate_file_key(), b"\x00" * (NONCE_SIZE + TAG_SIZE - 1))


def test_bad_key_lengths() -> None:
    with pytest.raises(FailedToEncryptData):
        seal(b"\x00" * (KEY_SIZE - 1), b"data")
    with pytest.raises(MalformedFile):
        open_sealed(b"\x00" * (KEY_SIZE + 1), b"\x00" * 64)
