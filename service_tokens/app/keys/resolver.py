"""
Key resolver adapter.

The key handed to ``verify_async`` is either literal material or a resolver
that looks the key up from the token header:

- ``async def resolver(header) -> key``
- ``def resolver(header, done)`` calling ``done(error, key)`` once, possibly
  from another thread or a later loop iteration.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Dict, Optional

from shared.logging import get_logger

from ..errors import JsonWebTokenError

logger = get_logger("tokens.keys")


def is_resolver(key: Any) -> bool:
    return callable(key)


def require_literal_key(key: Any) -> None:
    """Reject resolvers where an immediate result is expected."""
    if is_resolver(key):
        raise JsonWebTokenError(
            "verify must be called asynchronous if secret or public key is provided as a callback"
        )


def _resolver_error(error: Any) -> JsonWebTokenError:
    inner = error if isinstance(error, BaseException) else None
    return JsonWebTokenError(
        f"error in secret or public key callback: {error}",
        inner,
        code="KEY_RESOLUTION_ERROR",
    )


async def resolve_key(key: Any, header: Dict[str, Any]) -> Any:
    """Turn ``key`` into key material for a token with ``header``."""
    if not is_resolver(key):
        return key

    try:
        if inspect.iscoroutinefunction(key):
            resolved = await key(header)
        else:
            resolved = await _from_callback(key, header)
    except JsonWebTokenError:
        raise
    except Exception as exc:
        raise _resolver_error(exc) from exc

    logger.debug("Key resolved", kid=header.get("kid"), alg=header.get("alg"))
    return resolved


async def _from_callback(resolver: Any, header: Dict[str, Any]) -> Any:
    loop = asyncio.get_running_loop()
    future: asyncio.Future = loop.create_future()

    def settle(error: Optional[Any], key: Any) -> None:
        if future.done():
            logger.debug("Key resolver answered more than once", kid=header.get("kid"))
            return
        if error is not None:
            future.set_exception(_resolver_error(error))
        else:
            future.set_result(key)

    def done(error: Optional[Any] = None, key: Any = None) -> None:
        loop.call_soon_threadsafe(settle, error, key)

    resolver(header, done)
    return await future
