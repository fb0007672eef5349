from __future__ import annotations

import json
import os
import time
from pathlib import Path
from typing import Any, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from ..config import CONFIG, KdfConfig
from ..core.exceptions import CorruptKeyStore, InvalidPassphrase, KeyNotFound
from ..paths import PathResolver
from ..utils import b64d, b64e

PRIVATE_FILE_MODE = 0o600


class KeyStore:
    """Filesystem-backed store for the local identity.

    Layout:
      - identity/public.pem
      - identity/private.enc   (JSON: {v, alg, kdf, salt, nonce, ct})
      - identity/identity.json (JSON: {name, created_at, key_size})
      - contacts/<name>.pem    (see ContactBook)
      - meta/recipients.json   (groups)
    """

    def __init__(self, root: Optional[Path | str] = None, kdf: KdfConfig | None = None) -> None:
        self.paths = PathResolver(Path(root) if root else CONFIG.store_dir)
        self.paths.ensure()
        self.kdf = kdf or CONFIG.kdf

    # ----- Identity -----
    def has_identity(self) -> bool:
        return self.paths.private_key.exists() and self.paths.public_key.exists()

    def identity_info(self) -> dict[str, Any]:
        if not self.paths.identity_info.exists():
            raise KeyNotFound("No local identity has been created")
        return json.loads(self.paths.identity_info.read_text(encoding="utf-8"))

    def write_identity(
        self,
        name: str,
        public_pem: bytes,
        private_pem_pkcs8: bytes,
        passphrase: bytes,
        key_size: int,
    ) -> None:
        if not passphrase:
            raise InvalidPassphrase("A passphrase is required to protect the private key")
        self.paths.public_key.write_bytes(public_pem)

        salt = os.urandom(self.kdf.salt_length)
        key = self._derive(passphrase, salt, self.kdf.n, self.kdf.r, self.kdf.p)
        nonce = os.urandom(12)
        ct = AESGCM(key).encrypt(nonce, private_pem_pkcs8, None)

        payload = {
            "v": 1,
            "alg": "AES-256-GCM",
            "kdf": {"name": self.kdf.algorithm, "n": self.kdf.n, "r": self.kdf.r, "p": self.kdf.p},
            "salt": b64e(salt),
            "nonce": b64e(nonce),
            "ct": b64e(ct),
        }
        self._write_private(self.paths.private_key, json.dumps(payload).encode("utf-8"))
        self.paths.identity_info.write_text(
            json.dumps({"name": name, "created_at": int(time.time()), "key_size": key_size}, indent=2),
            encoding="utf-8",
        )

    def load_public_pem(self) -> bytes:
        if not self.paths.public_key.exists():
            raise KeyNotFound("Public key not found for local identity")
        return self.paths.public_key.read_bytes()

    def load_private_pem(self, passphrase: bytes) -> bytes:
        enc_path = self.paths.private_key
        if not enc_path.exists():
            raise KeyNotFound("Private key not found for local identity")
        try:
            meta = json.loads(enc_path.read_text(encoding="utf-8"))
            params = meta.get("kdf") or {}
            key = self._derive(
                passphrase,
                b64d(meta["salt"]),
                int(params.get("n", self.kdf.n)),
                int(params.get("r", self.kdf.r)),
                int(params.get("p", self.kdf.p)),
            )
            nonce, ct = b64d(meta["nonce"]), b64d(meta["ct"])
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise CorruptKeyStore(f"Could not read {enc_path.name}: {exc}") from exc
        try:
            return AESGCM(key).decrypt(nonce, ct, None)
        except InvalidTag as exc:
            raise InvalidPassphrase("Passphrase does not unlock the private key") from exc
        except ValueError as exc:
            raise CorruptKeyStore(f"Could not read {enc_path.name}: {exc}") from exc

    # ----- Helpers -----
    def _derive(self, passphrase: bytes, salt: bytes, n: int, r: int, p: int) -> bytes:
        return Scrypt(salt=salt, length=self.kdf.length, n=n, r=r, p=p).derive(passphrase)

    @staticmethod
    def _write_private(path: Path, data: bytes) -> None:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, PRIVATE_FILE_MODE)
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        os.chmod(path, PRIVATE_FILE_MODE)


__all__ = ["KeyStore"]
