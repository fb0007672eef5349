import json
import os
import sys

import pytest

from groupcrypt.core.exceptions import CorruptKeyStore, InvalidPassphrase, InvalidUsername, KeyNotFound
from groupcrypt.services.key_manager import KeyManager
from groupcrypt.storage.keystore import KeyStore


def _manager(app_config, passphrase: bytes = b"correct horse") -> KeyManager:
    return KeyManager(passphrase, store=KeyStore(app_config.store_dir, kdf=app_config.kdf), config=app_config)


def test_create_identity_persists_keypair(app_config) -> None:
    public_key = _manager(app_config).create_identity("alice")
    assert public_key.key_size == 2048

    reloaded = _manager(app_config)
    assert reloaded.identity_name() == "alice"
    loaded_public, provider = reloaded.generate_or_load_keypair()
    assert loaded_public.public_numbers() == public_key.public_numbers()
    assert provider.block_size == 256


def test_create_identity_is_idempotent(app_config) -> None:
    first = _manager(app_config).create_identity("alice")
    second = _manager(app_config).create_identity("alice")
    assert first.public_numbers() == second.public_numbers()


def test_public_key_does_not_need_passphrase(app_config) -> None:
    created = _manager(app_config).create_identity("alice")
    assert _manager(app_config, b"").public_key.public_numbers() == created.public_numbers()


def test_wrong_passphrase(app_config) -> None:
    _manager(app_config).create_identity("alice")
    with pytest.raises(InvalidPassphrase):
        _manager(app_config, b"wrong").sign(b"data")


def test_empty_passphrase_is_rejected(app_config) -> None:
    with pytest.raises(InvalidPassphrase):
        _manager(app_config, b"").create_identity("alice")


def test_identity_name_is_validated(app_config) -> None:
    with pytest.raises(InvalidUsername):
        _manager(app_config).create_identity("alice smith")
    assert not KeyStore(app_config.store_dir, kdf=app_config.kdf).has_identity()


def test_missing_identity(app_config) -> None:
    manager = _manager(app_config)
    with pytest.raises(KeyNotFound):
        manager.identity_name()
    with pytest.raises(KeyNotFound):
        manager.generate_or_load_keypair()


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
def test_private_key_file_mode(app_config) -> None:
    _manager(app_config).create_identity("alice")
    store = KeyStore(app_config.store_dir, kdf=app_config.kdf)
    assert os.stat(store.paths.private_key).st_mode & 0o777 == 0o600


def test_signatures_from_store_verify(app_config) -> None:
    manager = _manager(app_config)
    public_key = manager.create_identity("alice")
    signature = manager.sign(b"payload")
    manager.verify(public_key, signature, b"payload")


@pytest.mark.parametrize(
    "mutate",
    [
        pytest.param(lambda meta: "not json at all", id="not-json"),
        pytest.param(lambda meta: json.dumps({k: v for k, v in meta.items() if k != "salt"}), id="missing-salt"),
        pytest.param(lambda meta: json.dumps({**meta, "nonce": "***"}), id="nonce-not-base64"),
        pytest.param(lambda meta: json.dumps({**meta, "nonce": "AAAA"}), id="nonce-wrong-length"),
        pytest.param(lambda meta: json.dumps([meta]), id="not-an-object"),
    ],
)
def test_corrupted_private_key_file(app_config, mutate) -> None:
    manager = _manager(app_config)
    manager.create_identity("alice")
    private_path = manager.store.paths.private_key
    meta = json.loads(private_path.read_text(encoding="utf-8"))
    private_path.write_text(mutate(meta), encoding="utf-8")

    with pytest.raises(CorruptKeyStore):
        _manager(app_config).sign(b"data")
