"""
Registered claim injection for the sign path.

The injector turns a caller payload plus validated sign options into the
final header and serialized payload handed to the signature primitive.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Any, Dict, Tuple

from .. import timespan
from ..errors import JsonWebTokenError
from ..options.schema import SignOptions
from .validator import is_number


class _Missing:
    """Marker for a claim with no value; such claims are left out."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()

# (option, claim) pairs that cannot both be present
OPTION_CLAIMS: Tuple[Tuple[str, str], ...] = (
    ("expires_in", "exp"),
    ("not_before", "nbf"),
    ("audience", "aud"),
    ("issuer", "iss"),
    ("subject", "sub"),
    ("jwtid", "jti"),
)

# Options meaningful only for object payloads
OBJECT_ONLY_OPTIONS: Tuple[str, ...] = (
    "expires_in",
    "not_before",
    "no_timestamp",
    "audience",
    "issuer",
    "subject",
    "jwtid",
)

TIME_CLAIMS: Tuple[str, ...] = ("iat", "exp", "nbf")


@dataclass(frozen=True)
class EncodedClaims:
    """Header and payload bytes ready for signing."""

    header: Dict[str, Any]
    payload: bytes


def payload_kind(payload: Any) -> str:
    """Classify ``payload`` as ``object`` or one of the scalar kinds."""
    if payload is None:
        raise JsonWebTokenError("payload is required")
    if isinstance(payload, dict):
        return "object"
    if isinstance(payload, bool):
        return "boolean"
    if isinstance(payload, (int, float)):
        return "number"
    if isinstance(payload, str):
        return "string"
    if isinstance(payload, bytes):
        return "bytes"
    raise JsonWebTokenError('Expected "payload" to be a plain object.')


def _present(claims: Dict[str, Any], name: str) -> bool:
    return name in claims and claims[name] is not MISSING


def _finite_or_none(value: Any) -> Any:
    if is_number(value) and not math.isfinite(value):
        return None
    return value


def _strip_missing(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _strip_missing(item) for key, item in value.items() if item is not MISSING}
    if isinstance(value, (list, tuple)):
        return [None if item is MISSING else _strip_missing(item) for item in value]
    return value


def _encode_text(text: str, encoding: str) -> bytes:
    try:
        return text.encode(encoding)
    except UnicodeEncodeError as exc:
        raise JsonWebTokenError(f"payload could not be encoded as {encoding}", exc) from exc


def _serialize(value: Any, encoding: str) -> bytes:
    try:
        text = json.dumps(value, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError, RecursionError) as exc:
        raise JsonWebTokenError(f"payload could not be serialized: {exc}", exc) from exc
    return _encode_text(text, encoding)


class ClaimInjector:
    """Compute registered claims and the header for one sign call."""

    def __init__(self, options: SignOptions, now: int):
        self.options = options
        self.now = now

    def inject(self, payload: Any) -> EncodedClaims:
        kind = payload_kind(payload)
        if kind == "object":
            body = self._encode_object(payload)
        else:
            body = self._encode_scalar(payload, kind)
        return EncodedClaims(header=self._header(kind), payload=body)

    def _header(self, kind: str) -> Dict[str, Any]:
        header: Dict[str, Any] = {"alg": self.options.algorithm}
        if kind == "object":
            header["typ"] = "JWT"
        if self.options.keyid is not None:
            header["kid"] = self.options.keyid
        for name, value in (self.options.header or {}).items():
            if name != "alg":
                header[name] = value
        return header

    def _encode_scalar(self, payload: Any, kind: str) -> bytes:
        invalid = [name for name in OBJECT_ONLY_OPTIONS if name in self.options.model_fields_set]
        if invalid:
            raise JsonWebTokenError(f"invalid {','.join(invalid)} option for {kind} payload")

        if isinstance(payload, bytes):
            return payload
        if isinstance(payload, str):
            return _encode_text(payload, self.options.encoding)
        return _serialize(payload, self.options.encoding)

    def _encode_object(self, payload: Dict[str, Any]) -> bytes:
        options = self.options
        for name in TIME_CLAIMS:
            if _present(payload, name) and not is_number(payload[name]):
                raise JsonWebTokenError(f'"{name}" should be a number of seconds')

        for option, claim in OPTION_CLAIMS:
            if getattr(options, option) is not None and _present(payload, claim):
                raise JsonWebTokenError(
                    f'Bad "options.{option}" option. The payload already has an "{claim}" property.'
                )

        claims = payload if options.mutate_payload else dict(payload)

        issued_at = claims.get("iat") if _present(claims, "iat") else None
        if not issued_at or math.isnan(issued_at):
            issued_at = self.now

        if options.no_timestamp:
            claims.pop("iat", None)
        else:
            claims["iat"] = issued_at

        if options.not_before is not None:
            claims["nbf"] = timespan.resolve(options.not_before, issued_at)
        if options.expires_in is not None:
            claims["exp"] = timespan.resolve(options.expires_in, issued_at)

        if options.audience is not None:
            claims["aud"] = list(options.audience) if isinstance(options.audience, list) else options.audience
        if options.issuer is not None:
            claims["iss"] = options.issuer
        if options.subject is not None:
            claims["sub"] = options.subject
        if options.jwtid is not None:
            claims["jti"] = options.jwtid

        # Non-finite time claims go on the wire as null
        wire = _strip_missing(claims)
        for name in TIME_CLAIMS:
            if name in wire:
                wire[name] = _finite_or_none(wire[name])
        return _serialize(wire, options.encoding)
