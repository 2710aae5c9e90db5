"""
Compact token decoding without any verification.
"""

from __future__ import annotations

import binascii
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from jwt.utils import base64url_decode

_COMPACT = re.compile(r"[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*")


@dataclass(frozen=True)
class DecodedToken:
    """Header, payload and signature segment of a compact token."""

    header: Dict[str, Any]
    payload: Any
    signature: str


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name}")


def _load_json(text: str) -> Any:
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except RecursionError as exc:
        raise ValueError("JSON nesting is too deep") from exc


def decode_complete(token: Union[str, bytes]) -> DecodedToken:
    """Decode ``token`` or raise ``ValueError`` if it is not a compact token."""
    if isinstance(token, bytes):
        token = token.decode("ascii")
    if not isinstance(token, str):
        raise ValueError("token must be a string")
    if _COMPACT.fullmatch(token) is None:
        raise ValueError("token is not in compact serialization")

    header_segment, payload_segment, signature = token.split(".")
    try:
        header = _load_json(base64url_decode(header_segment).decode("utf-8"))
        payload_text = base64url_decode(payload_segment).decode("utf-8", errors="replace")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise ValueError("token segments are not valid base64url") from exc

    if not isinstance(header, dict):
        raise ValueError("token header must be a JSON object")

    try:
        payload = _load_json(payload_text)
    except ValueError:
        payload = payload_text
    if not isinstance(payload, (dict, list)):
        payload = payload_text

    return DecodedToken(header=header, payload=payload, signature=signature)


def decode(token: Any, complete: bool = False) -> Optional[Union[DecodedToken, Any]]:
    """Return the payload of ``token`` (or the full ``DecodedToken``).

    Malformed input yields ``None``; nothing is ever verified here.
    """
    try:
        decoded = decode_complete(token)
    except ValueError:
        return None

    if complete:
        return decoded
    return decoded.payload
