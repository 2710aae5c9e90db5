"""
Call site of the JWS signature primitive (PyJWT).
"""

from __future__ import annotations

import binascii
from typing import Any, Dict

from jwt.algorithms import get_default_algorithms
from jwt.api_jws import PyJWS
from jwt.exceptions import PyJWTError
from jwt.utils import base64url_decode

from shared.logging import get_logger

from ..errors import JsonWebTokenError
from .algorithms import ClassifiedKey

logger = get_logger("tokens.signer")

_jws = PyJWS()
_algorithms = get_default_algorithms()


def sign_jws(header: Dict[str, Any], payload: bytes, key: ClassifiedKey, algorithm: str) -> str:
    """Produce a compact token for ``payload`` under ``header``."""
    # alg is passed separately; b64=false would detach the payload
    headers = {name: value for name, value in header.items() if name not in ("alg", "b64")}
    # PyJWS writes typ=JWT unless told otherwise; a falsy typ is dropped
    headers.setdefault("typ", None)

    try:
        token = _jws.encode(
            payload,
            key.material,
            algorithm=algorithm,
            headers=headers,
            sort_headers=False,
        )
    except (PyJWTError, ValueError, TypeError) as exc:
        raise JsonWebTokenError(f"unable to sign token: {exc}", exc, code="SIGNING_ERROR") from exc

    logger.debug("Token signed", algorithm=algorithm, key_kind=key.kind.value)
    return token


def verify_jws(token: str, key: ClassifiedKey, algorithm: str) -> bool:
    """Check the signature of a compact ``token`` with ``key``.

    ``none`` tokens are valid only with an empty signature segment.
    """
    signing_input, _, crypto_segment = token.rpartition(".")
    if algorithm == "none":
        return crypto_segment == ""

    alg_obj = _algorithms[algorithm]
    try:
        prepared = alg_obj.prepare_key(key.material)
        signature = base64url_decode(crypto_segment)
        return alg_obj.verify(signing_input.encode("ascii"), prepared, signature)
    except (PyJWTError, ValueError, TypeError, binascii.Error) as exc:
        raise JsonWebTokenError(str(exc), exc) from exc
