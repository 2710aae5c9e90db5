"""
Algorithm policy: which signing algorithms a key may serve.

Key material is classified with cryptography's own parsers into a
``KeyKind``; the allowed algorithm set is a plain function of that kind.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, FrozenSet, Literal, Union, get_args

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.serialization import (
    load_pem_private_key,
    load_pem_public_key,
    load_ssh_public_key,
)

from ..errors import JsonWebTokenError

Algorithm = Literal[
    "RS256", "RS384", "RS512",
    "PS256", "PS384", "PS512",
    "ES256", "ES384", "ES512",
    "HS256", "HS384", "HS512",
    "none",
]

SUPPORTED_ALGORITHMS = get_args(Algorithm)
DEFAULT_ALGORITHM = "HS256"

HMAC_ALGORITHMS: FrozenSet[str] = frozenset({"HS256", "HS384", "HS512"})
RSA_ALGORITHMS: FrozenSet[str] = frozenset({"RS256", "RS384", "RS512", "PS256", "PS384", "PS512"})
EC_ALGORITHMS: FrozenSet[str] = frozenset({"ES256", "ES384", "ES512"})
NONE_ALGORITHMS: FrozenSet[str] = frozenset({"none"})

KeyMaterial = Union[bytes, rsa.RSAPrivateKey, rsa.RSAPublicKey, ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey, None]


class KeyKind(enum.Enum):
    """Shape of the key handed to sign or verify."""

    SYMMETRIC = "symmetric"
    RSA_PUBLIC = "rsa_public"
    RSA_PRIVATE = "rsa_private"
    EC_PUBLIC = "ec_public"
    EC_PRIVATE = "ec_private"
    NONE = "none"

    @property
    def is_private(self) -> bool:
        return self in (KeyKind.RSA_PRIVATE, KeyKind.EC_PRIVATE)


_ALLOWED = {
    KeyKind.SYMMETRIC: HMAC_ALGORITHMS,
    KeyKind.RSA_PUBLIC: RSA_ALGORITHMS,
    KeyKind.RSA_PRIVATE: RSA_ALGORITHMS,
    KeyKind.EC_PUBLIC: EC_ALGORITHMS,
    KeyKind.EC_PRIVATE: EC_ALGORITHMS,
    KeyKind.NONE: NONE_ALGORITHMS,
}


@dataclass(frozen=True)
class ClassifiedKey:
    """A key together with its kind and the parsed material to sign with."""

    kind: KeyKind
    material: KeyMaterial

    def public(self) -> "ClassifiedKey":
        """The verifying half of an asymmetric private key."""
        if self.kind is KeyKind.RSA_PRIVATE:
            return ClassifiedKey(KeyKind.RSA_PUBLIC, self.material.public_key())
        if self.kind is KeyKind.EC_PRIVATE:
            return ClassifiedKey(KeyKind.EC_PUBLIC, self.material.public_key())
        return self


def allowed_algorithms(kind: KeyKind) -> FrozenSet[str]:
    """Algorithms a key of ``kind`` can serve."""
    return _ALLOWED[kind]


def is_empty_key(key: Any) -> bool:
    return key is None or (isinstance(key, (str, bytes)) and len(key) == 0)


def classify_key(key: Any) -> ClassifiedKey:
    """Classify ``key`` into a ``KeyKind``.

    Accepts ``None``/empty values, str or bytes holding a secret, a PEM
    public or private key, a PEM X.509 certificate or an OpenSSH public key,
    and cryptography RSA/EC key objects.
    """
    if is_empty_key(key):
        return ClassifiedKey(KeyKind.NONE, None)

    if isinstance(key, str):
        key = key.encode("utf-8")

    if isinstance(key, bytes):
        parsed = _parse_key_bytes(key)
        if parsed is None:
            return ClassifiedKey(KeyKind.SYMMETRIC, key)
        key = parsed

    if isinstance(key, rsa.RSAPrivateKey):
        return ClassifiedKey(KeyKind.RSA_PRIVATE, key)
    if isinstance(key, rsa.RSAPublicKey):
        return ClassifiedKey(KeyKind.RSA_PUBLIC, key)
    if isinstance(key, ec.EllipticCurvePrivateKey):
        return ClassifiedKey(KeyKind.EC_PRIVATE, key)
    if isinstance(key, ec.EllipticCurvePublicKey):
        return ClassifiedKey(KeyKind.EC_PUBLIC, key)
    if isinstance(key, x509.Certificate):
        return classify_key(key.public_key())

    raise JsonWebTokenError(
        f"unsupported key type: {type(key).__name__}",
        code="INVALID_KEY",
    )


def _parse_key_bytes(data: bytes) -> Any:
    """Try each supported key encoding; ``None`` means a plain secret."""
    loaders = (
        load_pem_public_key,
        lambda raw: load_pem_private_key(raw, password=None),
        x509.load_pem_x509_certificate,
        load_ssh_public_key,
    )
    for loader in loaders:
        try:
            return loader(data)
        except (ValueError, TypeError, UnsupportedAlgorithm):
            continue
    return None


def key_requirement(algorithm: str, *, private: bool) -> str:
    """Human readable description of the key ``algorithm`` needs."""
    if algorithm in HMAC_ALGORITHMS:
        return "a symmetric key"
    qualifier = "private" if private else "public"
    if algorithm in RSA_ALGORITHMS:
        return f"an RSA {qualifier} key"
    if algorithm in EC_ALGORITHMS:
        return f"an EC {qualifier} key"
    return "empty"
