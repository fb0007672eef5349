# Key providers: opaque handles for sign/verify/wrap/unwrap plus key custody.
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import structlog
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import rsa

from ..config import CONFIG, AppConfig
from ..core.exceptions import (
    FailedToCreateSignature,
    FailedToEncryptData,
    FileWasTamperedWith,
    KeyExportError,
    KeyImportError,
    KeyNotFound,
)
from ..crypto import asymmetric as asy
from ..models import validate_username
from ..storage.keystore import KeyStore

logger = structlog.get_logger(__name__)


class KeyProvider(ABC):
    """Everything the protocol needs from key custody.

    Private key material never leaves an implementation: callers only ask it to
    sign or unwrap. Public-key operations are shared by every provider.
    """

    min_key_bits: int = CONFIG.crypto.min_rsa_key_bits

    @property
    @abstractmethod
    def public_key(self) -> rsa.RSAPublicKey:
        """The public half of the local keypair"""

    @property
    @abstractmethod
    def block_size(self) -> int:
        """Size in bytes of ciphertexts this provider can unwrap"""

    @abstractmethod
    def generate_or_load_keypair(self) -> tuple[rsa.RSAPublicKey, "KeyProvider"]:
        """Return the public key and a provider bound to the private key"""

    @abstractmethod
    def sign(self, data: bytes) -> bytes:
        ...

    @abstractmethod
    def unwrap(self, ciphertext: bytes) -> bytes:
        """Raise ``ValueError`` when the ciphertext was not produced for this key."""

    # ----- Public-key operations -----
    def wrap(self, public_key: rsa.RSAPublicKey, plaintext: bytes) -> bytes:
        if not isinstance(public_key, rsa.RSAPublicKey):
            raise FailedToEncryptData("Recipient key cannot perform RSA-OAEP encryption")
        if public_key.key_size < self.min_key_bits:
            raise FailedToEncryptData(
                f"Recipient key is {public_key.key_size} bits, at least {self.min_key_bits} required"
            )
        bound = asy.max_wrap_plaintext(public_key)
        if len(plaintext) >= bound:
            raise FailedToEncryptData(
                f"Wrapped key record is {len(plaintext)} bytes, must be below {bound}"
            )
        try:
            return asy.rsa_encrypt(public_key, plaintext)
        except ValueError as exc:
            raise FailedToEncryptData(f"RSA-OAEP encryption failed: {exc}") from exc

    def verify(self, public_key: rsa.RSAPublicKey, signature: bytes, data: bytes) -> None:
        if not isinstance(public_key, rsa.RSAPublicKey):
            raise FileWasTamperedWith("Owner key cannot verify RSA-PSS signatures")
        if len(signature) != asy.block_size(public_key):
            raise FileWasTamperedWith("Signature length does not match the owner's key size")
        try:
            asy.verify(public_key, signature, data)
        except InvalidSignature as exc:
            raise FileWasTamperedWith("Signature does not match the envelope") from exc

    @staticmethod
    def import_public_key(pem: bytes) -> rsa.RSAPublicKey:
        try:
            return asy.rsa_load_public(pem)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise KeyImportError(f"Could not import certificate: {exc}") from exc

    def export_public_key(self, public_key: Optional[rsa.RSAPublicKey] = None) -> bytes:
        key = public_key if public_key is not None else self.public_key
        if not isinstance(key, rsa.RSAPublicKey):
            raise KeyExportError("Only RSA public keys can be exported")
        return asy.rsa_public_bytes(key)


class RsaKeyProvider(KeyProvider):
    """In-memory provider around an already loaded RSA private key"""

    def __init__(self, private_key: rsa.RSAPrivateKey) -> None:
        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise TypeError("RsaKeyProvider needs an RSA private key")
        self._priv = private_key
        self._pub = private_key.public_key()

    @classmethod
    def generate(cls, bits: int = 3072) -> "RsaKeyProvider":
        return cls(asy.gen_rsa(bits))

    @property
    def public_key(self) -> rsa.RSAPublicKey:
        return self._pub

    @property
    def block_size(self) -> int:
        return asy.block_size(self._priv)

    def generate_or_load_keypair(self) -> tuple[rsa.RSAPublicKey, KeyProvider]:
        return self._pub, self

    def sign(self, data: bytes) -> bytes:
        try:
            return asy.sign(self._priv, data)
        except (ValueError, TypeError) as exc:
            raise FailedToCreateSignature(f"RSA-PSS signing failed: {exc}") from exc

    def unwrap(self, ciphertext: bytes) -> bytes:
        return asy.rsa_decrypt(self._priv, ciphertext)


class KeyManager(KeyProvider):
    """Persisted local identity backed by ``KeyStore``.

    The keypair is generated on first use and loaded on every later call, so
    ``generate_or_load_keypair`` is idempotent across process restarts.
    """

    def __init__(
        self,
        passphrase: bytes,
        store: KeyStore | None = None,
        config: AppConfig | None = None,
    ) -> None:
        self.config = config or CONFIG
        self.store = store or KeyStore(self.config.store_dir, kdf=self.config.kdf)
        self.min_key_bits = self.config.crypto.min_rsa_key_bits
        self._passphrase = passphrase
        self._loaded: RsaKeyProvider | None = None

    def create_identity(self, name: str) -> rsa.RSAPublicKey:
        """Generate the identity keypair unless one already exists."""
        validate_username(name)
        if self.store.has_identity():
            info = self.store.identity_info()
            logger.info("keys.identity.exists", name=info.get("name"))
            return self.generate_or_load_keypair()[0]
        bits = self.config.crypto.rsa_key_bits
        priv = asy.gen_rsa(bits)
        self.store.write_identity(
            name,
            asy.rsa_public_bytes(priv.public_key()),
            asy.rsa_private_bytes(priv),
            self._passphrase,
            key_size=bits,
        )
        self._loaded = RsaKeyProvider(priv)
        logger.info("keys.identity.created", name=name, key_size=bits)
        return self._loaded.public_key

    def identity_name(self) -> str:
        name = self.store.identity_info().get("name")
        if not name:
            raise KeyNotFound("Local identity has no name")
        return name

    def generate_or_load_keypair(self) -> tuple[rsa.RSAPublicKey, KeyProvider]:
        if self._loaded is None:
            if not self.store.has_identity():
                raise KeyNotFound("No local identity; create one with a name first")
            pem = self.store.load_private_pem(self._passphrase)
            self._loaded = RsaKeyProvider(asy.rsa_load_private(pem))
            logger.debug("keys.identity.loaded")
        return self._loaded.public_key, self._loaded

    def _provider(self) -> RsaKeyProvider:
        self.generate_or_load_keypair()
        assert self._loaded is not None
        return self._loaded

    @property
    def public_key(self) -> rsa.RSAPublicKey:
        if self._loaded is None and self.store.has_identity():
            return asy.rsa_load_public(self.store.load_public_pem())
        return self._provider().public_key

    @property
    def block_size(self) -> int:
        return self._provider().block_size

    def sign(self, data: bytes) -> bytes:
        return self._provider().sign(data)

    def unwrap(self, ciphertext: bytes) -> bytes:
        return self._provider().unwrap(ciphertext)


__all__ = ["KeyManager", "KeyProvider", "RsaKeyProvider"]
