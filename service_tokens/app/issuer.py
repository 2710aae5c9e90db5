"""
Token issuance.

``sign`` returns the compact token directly; ``sign_async`` runs the same
core and either returns the token or hands it to a ``callback(error, token)``.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional

from shared.logging import get_logger

from . import clock
from .claims.injector import ClaimInjector
from .errors import JsonWebTokenError
from .options.schema import SignOptions, validate_sign_options
from .signing.algorithms import (
    ClassifiedKey,
    KeyKind,
    allowed_algorithms,
    classify_key,
    is_empty_key,
    key_requirement,
)
from .signing.signer import sign_jws

logger = get_logger("tokens.issuer")

SignCallback = Callable[[Optional[JsonWebTokenError], Optional[str]], Any]


def signing_key(key: Any, options: SignOptions) -> ClassifiedKey:
    """Check ``key`` against the chosen algorithm and classify it."""
    algorithm = options.algorithm
    if algorithm == "none":
        if not is_empty_key(key):
            raise JsonWebTokenError(
                'secret_or_private_key must be empty when algorithm is "none"',
                code="INVALID_KEY",
            )
        return ClassifiedKey(KeyKind.NONE, None)

    if is_empty_key(key):
        raise JsonWebTokenError("secret_or_private_key must have a value", code="INVALID_KEY")

    classified = classify_key(key)
    usable = algorithm in allowed_algorithms(classified.kind) and (
        classified.kind is KeyKind.SYMMETRIC or classified.kind.is_private
    )
    if not usable:
        raise JsonWebTokenError(
            f"secret_or_private_key must be {key_requirement(algorithm, private=True)} when using {algorithm}",
            code="INVALID_KEY",
        )
    return classified


def _issue(payload: Any, secret_or_private_key: Any, options: SignOptions) -> str:
    key = signing_key(secret_or_private_key, options)
    encoded = ClaimInjector(options, clock.current_timestamp()).inject(payload)
    token = sign_jws(encoded.header, encoded.payload, key, options.algorithm)

    logger.debug(
        "Token issued",
        algorithm=options.algorithm,
        kid=encoded.header.get("kid"),
    )
    return token


def sign(
    payload: Any,
    secret_or_private_key: Any,
    options: Optional[Mapping[str, Any]] = None,
    **kwargs: Any,
) -> str:
    """Issue a compact token for ``payload``.

    Options may be passed as a mapping, as keywords, or both (keywords win).
    Raises ``JsonWebTokenError`` for invalid options, keys or payloads.
    """
    sign_options = validate_sign_options(options, **kwargs)
    return _issue(payload, secret_or_private_key, sign_options)


async def sign_async(
    payload: Any,
    secret_or_private_key: Any,
    options: Optional[Mapping[str, Any]] = None,
    *,
    callback: Optional[SignCallback] = None,
    **kwargs: Any,
) -> Optional[str]:
    """Awaitable ``sign``; with ``callback`` the outcome goes there instead."""
    try:
        token = sign(payload, secret_or_private_key, options, **kwargs)
    except JsonWebTokenError as exc:
        if callback is None:
            raise
        callback(exc, None)
        return None

    if callback is None:
        return token
    callback(None, token)
    return None
