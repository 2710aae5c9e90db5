"""
Shared fixtures for token service tests.
"""

import json
from typing import Any, Dict, Optional
from unittest.mock import patch

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from jwt.utils import base64url_encode

SECRET = "shhhhh"


class FakeClock:
    """Mutable stand-in for the wall clock, in epoch seconds."""

    def __init__(self, now: int = 60):
        self.now = now

    def tick(self, seconds: int) -> None:
        self.now += seconds


def _private_pem(key) -> bytes:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def _public_pem(key) -> bytes:
    return key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def unsigned_token(payload: Any, header: Optional[Dict[str, Any]] = None) -> str:
    """Build an ``alg=none`` token by hand, bypassing claim validation."""
    header = header or {"alg": "none", "typ": "JWT"}
    segments = [
        base64url_encode(json.dumps(header).encode()),
        base64url_encode(json.dumps(payload).encode()),
    ]
    return b".".join(segments).decode() + "."


@pytest.fixture
def fake_clock():
    """Freeze token time at 60 seconds past the epoch."""
    clock = FakeClock()
    with patch("service_tokens.app.clock.current_timestamp", side_effect=lambda: clock.now):
        yield clock


@pytest.fixture(scope="session")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def rsa_private_pem(rsa_key) -> bytes:
    return _private_pem(rsa_key)


@pytest.fixture(scope="session")
def rsa_public_pem(rsa_key) -> bytes:
    return _public_pem(rsa_key)


@pytest.fixture(scope="session")
def small_rsa_private_pem() -> bytes:
    return _private_pem(rsa.generate_private_key(public_exponent=65537, key_size=1024))


@pytest.fixture(scope="session")
def ec_keys():
    """EC private keys keyed by the algorithm their curve belongs to."""
    return {
        "ES256": ec.generate_private_key(ec.SECP256R1()),
        "ES384": ec.generate_private_key(ec.SECP384R1()),
        "ES512": ec.generate_private_key(ec.SECP521R1()),
    }


@pytest.fixture(scope="session")
def ec_private_pem(ec_keys) -> bytes:
    return _private_pem(ec_keys["ES256"])


@pytest.fixture(scope="session")
def ec_public_pem(ec_keys) -> bytes:
    return _public_pem(ec_keys["ES256"])


@pytest.fixture
def secret() -> str:
    return SECRET


@pytest.fixture
def make_unsigned_token():
    return unsigned_token
