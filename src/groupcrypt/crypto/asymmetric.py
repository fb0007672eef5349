"""RSA primitives for key wrapping and envelope signatures.

The suite is fixed: OAEP with SHA-512 for wrapping the file key and PSS with
SHA-512 (salt length equal to the digest size) for the envelope signature.
Callers get raw ``cryptography`` exceptions here; services translate them.
"""

from __future__ import annotations

import hashlib
from typing import Final

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

PUBLIC_EXPONENT: Final[int] = 65537
OAEP_HASH_SIZE: Final[int] = hashes.SHA512.digest_size
#: OAEP overhead in bytes: two digests plus two marker bytes.
OAEP_OVERHEAD: Final[int] = 2 * OAEP_HASH_SIZE + 2


def _oaep() -> padding.OAEP:
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA512()),
        algorithm=hashes.SHA512(),
        label=None,
    )


def _pss() -> padding.PSS:
    return padding.PSS(
        mgf=padding.MGF1(hashes.SHA512()),
        salt_length=padding.PSS.DIGEST_LENGTH,
    )


# ---------- Key generation & serialization ----------
def gen_rsa(bits: int = 3072) -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=PUBLIC_EXPONENT, key_size=bits)


def rsa_public_bytes(pub: rsa.RSAPublicKey) -> bytes:
    return pub.public_bytes(
        serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
    )


def rsa_private_bytes(priv: rsa.RSAPrivateKey) -> bytes:
    return priv.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )


def rsa_load_private(pem: bytes) -> rsa.RSAPrivateKey:
    key = serialization.load_pem_private_key(pem, password=None)
    if not isinstance(key, rsa.RSAPrivateKey):
        raise TypeError("Expected an RSA private key")
    return key


def rsa_load_public(pem: bytes) -> rsa.RSAPublicKey:
    key = serialization.load_pem_public_key(pem)
    if not isinstance(key, rsa.RSAPublicKey):
        raise TypeError("Expected an RSA public key")
    return key


def public_fingerprint(pub: rsa.RSAPublicKey) -> str:
    """SHA-256 hex digest of the DER SubjectPublicKeyInfo."""
    der = pub.public_bytes(
        serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
    )
    return hashlib.sha256(der).hexdigest()


# ---------- Sizes ----------
def block_size(key: rsa.RSAPublicKey | rsa.RSAPrivateKey) -> int:
    """Modulus length in bytes; every OAEP ciphertext and PSS signature has this size."""
    return (key.key_size + 7) // 8


def max_wrap_plaintext(key: rsa.RSAPublicKey | rsa.RSAPrivateKey) -> int:
    return block_size(key) - OAEP_OVERHEAD


# ---------- OAEP ----------
def rsa_encrypt(pub: rsa.RSAPublicKey, data: bytes) -> bytes:
    return pub.encrypt(data, _oaep())


def rsa_decrypt(priv: rsa.RSAPrivateKey, ct: bytes) -> bytes:
    return priv.decrypt(ct, _oaep())


# ---------- PSS ----------
def sign(priv: rsa.RSAPrivateKey, data: bytes) -> bytes:
    return priv.sign(data, _pss(), hashes.SHA512())


def verify(pub: rsa.RSAPublicKey, sig: bytes, data: bytes) -> None:
    """Raise ``cryptography.exceptions.InvalidSignature`` on mismatch."""
    pub.verify(sig, data, _pss(), hashes.SHA512())


__all__ = [
    "OAEP_OVERHEAD",
    "block_size",
    "gen_rsa",
    "max_wrap_plaintext",
    "public_fingerprint",
    "rsa_decrypt",
    "rsa_encrypt",
    "rsa_load_private",
    "rsa_load_public",
    "rsa_private_bytes",
    "rsa_public_bytes",
    "sign",
    "verify",
]
