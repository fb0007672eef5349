from __future__ import annotations

from pathlib import Path

import pytest

from groupcrypt.config import AppConfig, CryptoConfig, KdfConfig, LoggingConfig
from groupcrypt.models import LocalUser
from groupcrypt.services.key_manager import RsaKeyProvider


@pytest.fixture(scope="session")
def alice_provider() -> RsaKeyProvider:
    return RsaKeyProvider.generate(3072)


@pytest.fixture(scope="session")
def bob_provider() -> RsaKeyProvider:
    return RsaKeyProvider.generate(3072)


@pytest.fixture(scope="session")
def carol_provider() -> RsaKeyProvider:
    return RsaKeyProvider.generate(3072)


@pytest.fixture(scope="session")
def small_provider() -> RsaKeyProvider:
    return RsaKeyProvider.generate(2048)


@pytest.fixture(scope="session")
def alice(alice_provider: RsaKeyProvider) -> LocalUser:
    return LocalUser(name="alice", provider=alice_provider)


@pytest.fixture(scope="session")
def bob(bob_provider: RsaKeyProvider) -> LocalUser:
    return LocalUser(name="bob", provider=bob_provider)


@pytest.fixture(scope="session")
def carol(carol_provider: RsaKeyProvider) -> LocalUser:
    return LocalUser(name="carol", provider=carol_provider)


@pytest.fixture()
def app_config(tmp_path: Path) -> AppConfig:
    """Isolated store with cheap scrypt parameters and 2048-bit identities"""
    return AppConfig(
        store_dir=tmp_path / "store",
        crypto=CryptoConfig(rsa_key_bits=2048),
        kdf=KdfConfig(n=2**4),
        logging=LoggingConfig(level="WARNING"),
    )
