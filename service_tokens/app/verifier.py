"""
Token verification.

Both entry points share one core: the token is decoded, the key is
resolved from the header, the algorithm is checked against the allow-list
derived from the key, the signature is checked and the claims are
validated in order.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional

from shared.logging import bind_token_context, clear_token_context, get_logger

from .claims.validator import ClaimsValidator
from .clock import Clock
from .decoding.decoder import DecodedToken, decode_complete
from .errors import JsonWebTokenError
from .keys.resolver import require_literal_key, resolve_key
from .options.schema import VerifyOptions, validate_verify_options
from .signing.algorithms import KeyKind, allowed_algorithms, classify_key, key_requirement
from .signing.signer import verify_jws

logger = get_logger("tokens.verifier")

VerifyCallback = Callable[[Optional[JsonWebTokenError], Any], Any]


def decode_for_verification(token: Any) -> DecodedToken:
    """Structural checks on the raw token, then decode it."""
    if token is None or token == "":
        raise JsonWebTokenError("jwt must be provided")
    if not isinstance(token, str):
        raise JsonWebTokenError("jwt must be a string")
    if len(token.split(".")) != 3:
        raise JsonWebTokenError("jwt malformed")

    try:
        return decode_complete(token)
    except ValueError as exc:
        raise JsonWebTokenError("invalid token", exc) from exc


def complete_verification(
    token: str,
    decoded: DecodedToken,
    secret_or_public_key: Any,
    options: VerifyOptions,
) -> Any:
    """Algorithm policy, signature check and claim validation."""
    key = classify_key(secret_or_public_key).public()
    has_signature = decoded.signature != ""

    if not has_signature and key.kind is not KeyKind.NONE:
        raise JsonWebTokenError("jwt signature is required")
    if has_signature and key.kind is KeyKind.NONE:
        raise JsonWebTokenError("secret or public key must be provided")

    if options.algorithms is not None:
        candidates = frozenset(options.algorithms)
    elif not has_signature:
        candidates = frozenset({"none"})
    else:
        candidates = allowed_algorithms(key.kind)

    algorithm = decoded.header.get("alg")
    if not isinstance(algorithm, str) or algorithm not in candidates:
        raise JsonWebTokenError("invalid algorithm")
    if algorithm not in allowed_algorithms(key.kind):
        raise JsonWebTokenError(
            f"secret or public key must be {key_requirement(algorithm, private=False)} when using {algorithm}"
        )

    if not verify_jws(token, key, algorithm):
        raise JsonWebTokenError("invalid signature")

    clock = Clock(timestamp=options.clock_timestamp, tolerance=options.clock_tolerance)
    payload = ClaimsValidator(options, clock).validate(decoded.payload)

    logger.debug("Token verified")
    if options.complete:
        return decoded
    return payload


def _log_rejection(exc: JsonWebTokenError) -> None:
    logger.info("Token rejected", code=exc.code, error=exc.message)


def verify(
    token: Any,
    secret_or_public_key: Any,
    options: Optional[Mapping[str, Any]] = None,
    **kwargs: Any,
) -> Any:
    """Verify ``token`` and return its payload (or ``DecodedToken``).

    Key resolvers are not accepted here; use ``verify_async`` for those.
    """
    try:
        verify_options = validate_verify_options(options, **kwargs)
        decoded = decode_for_verification(token)
        bind_token_context(decoded.header)
        require_literal_key(secret_or_public_key)
        return complete_verification(token, decoded, secret_or_public_key, verify_options)
    except JsonWebTokenError as exc:
        _log_rejection(exc)
        raise
    finally:
        clear_token_context()


async def verify_async(
    token: Any,
    secret_or_public_key: Any,
    options: Optional[Mapping[str, Any]] = None,
    *,
    callback: Optional[VerifyCallback] = None,
    **kwargs: Any,
) -> Any:
    """Awaitable ``verify`` that also accepts key resolvers.

    With ``callback`` the outcome is delivered as ``callback(error, result)``
    and ``None`` is returned.
    """
    try:
        verify_options = validate_verify_options(options, **kwargs)
        decoded = decode_for_verification(token)
        bind_token_context(decoded.header)
        key = await resolve_key(secret_or_public_key, decoded.header)
        result = complete_verification(token, decoded, key, verify_options)
    except JsonWebTokenError as exc:
        _log_rejection(exc)
        if callback is None:
            raise
        callback(exc, None)
        return None
    finally:
        clear_token_context()

    if callback is None:
        return result
    callback(None, result)
    return None
