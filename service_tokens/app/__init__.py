"""
Token service package.

Issues and verifies compact signed tokens (JWS compact serialization
carrying JWT claims):

- app.issuer: ``sign`` / ``sign_async``, option validation and claim injection.
- app.verifier: ``verify`` / ``verify_async``, algorithm policy, signature
  check and ordered claim validation.
- app.decoding: ``decode`` without verification.
- app.cli: command line entrypoint.

Design notes:
- Nothing here keeps state between calls; every sign or verify works on its
  own copy of the payload and options.
- Signature primitives come from PyJWT and key parsing from cryptography;
  this package owns claims, options and algorithm policy.
- Use the shared/ utilities for logging, configuration, and errors.
"""

from .claims.injector import MISSING
from .decoding.decoder import DecodedToken, decode
from .errors import JsonWebTokenError, NotBeforeError, TokenExpiredError
from .issuer import sign, sign_async
from .signing.algorithms import KeyKind, allowed_algorithms, classify_key
from .verifier import verify, verify_async

__all__ = [
    "DecodedToken",
    "JsonWebTokenError",
    "KeyKind",
    "MISSING",
    "NotBeforeError",
    "TokenExpiredError",
    "allowed_algorithms",
    "classify_key",
    "decode",
    "sign",
    "sign_async",
    "verify",
    "verify_async",
]
