"""
Option schemas for signing and verification.

Option bags are validated in full before any claim is computed. The first
violation aborts the operation with a message naming the offending option.
"""

from __future__ import annotations

import codecs
import math
import re
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, InstanceOf, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticCustomError

from .. import timespan
from ..errors import JsonWebTokenError
from ..signing.algorithms import DEFAULT_ALGORITHM, Algorithm

Timespan = Union[int, str]
Seconds = Union[int, float]
AudienceMatcher = Union[str, InstanceOf[re.Pattern]]

_TIMESPAN_MESSAGE = '"{name}" should be a number of seconds or string representing a timespan'

SIGN_MESSAGES: Dict[str, str] = {
    "algorithm": '"algorithm" must be a valid string enum value',
    "expires_in": _TIMESPAN_MESSAGE.format(name="expires_in"),
    "not_before": _TIMESPAN_MESSAGE.format(name="not_before"),
    "audience": '"audience" must be a string or array',
    "issuer": '"issuer" must be a string',
    "subject": '"subject" must be a string',
    "jwtid": '"jwtid" must be a string',
    "keyid": '"keyid" must be a string',
    "no_timestamp": '"no_timestamp" must be a boolean',
    "mutate_payload": '"mutate_payload" must be a boolean',
    "header": '"header" must be an object',
    "encoding": '"encoding" must be a string',
}

VERIFY_MESSAGES: Dict[str, str] = {
    "algorithms": '"algorithms" must be an array of supported algorithm names',
    "audience": '"audience" must be a string, a regular expression or an array of those',
    "issuer": '"issuer" must be a string or array',
    "subject": '"subject" must be a string',
    "jwtid": '"jwtid" must be a string',
    "nonce": '"nonce" must be a non-empty string',
    "clock_tolerance": '"clock_tolerance" must be a number',
    "clock_timestamp": '"clock_timestamp" must be a number',
    "max_age": _TIMESPAN_MESSAGE.format(name="max_age") + ' eg: "1d", "20h", 60',
    "ignore_expiration": '"ignore_expiration" must be a boolean',
    "ignore_not_before": '"ignore_not_before" must be a boolean',
    "complete": '"complete" must be a boolean',
}

# Custom errors raised by validators carry their final message.
_OPTION_ERROR = "option_message"


class SignOptions(BaseModel):
    """Options accepted when issuing a token."""

    model_config = ConfigDict(extra="forbid", strict=True, frozen=True)

    algorithm: Algorithm = DEFAULT_ALGORITHM
    expires_in: Optional[Timespan] = None
    not_before: Optional[Timespan] = None
    audience: Optional[Union[str, List[str]]] = None
    issuer: Optional[str] = None
    subject: Optional[str] = None
    jwtid: Optional[str] = None
    keyid: Optional[str] = None
    no_timestamp: bool = False
    mutate_payload: bool = False
    header: Optional[Dict[str, Any]] = None
    encoding: str = "utf-8"

    @field_validator("expires_in", "not_before")
    @classmethod
    def _check_timespan(cls, value: Optional[Timespan]) -> Optional[Timespan]:
        if isinstance(value, str) and timespan.parse(value) is None:
            raise ValueError("unparseable timespan")
        return value

    @field_validator("encoding")
    @classmethod
    def _check_encoding(cls, value: str) -> str:
        try:
            codecs.lookup(value)
        except LookupError:
            raise PydanticCustomError(_OPTION_ERROR, '"encoding" must be a known text encoding') from None
        return value


class VerifyOptions(BaseModel):
    """Options accepted when verifying a token."""

    model_config = ConfigDict(extra="forbid", strict=True, frozen=True)

    algorithms: Optional[List[Algorithm]] = None
    audience: Optional[Union[AudienceMatcher, List[AudienceMatcher]]] = None
    issuer: Optional[Union[str, List[str]]] = None
    subject: Optional[str] = None
    jwtid: Optional[str] = None
    nonce: Optional[str] = Field(default=None, min_length=1)
    clock_tolerance: Seconds = 0
    clock_timestamp: Optional[Seconds] = None
    max_age: Optional[Union[Seconds, str]] = None
    ignore_expiration: bool = False
    ignore_not_before: bool = False
    complete: bool = False

    @field_validator("clock_tolerance", "clock_timestamp")
    @classmethod
    def _check_finite(cls, value: Optional[Seconds]) -> Optional[Seconds]:
        if value is not None and not math.isfinite(value):
            raise ValueError("not a finite number")
        return value

    @field_validator("max_age")
    @classmethod
    def _check_max_age(cls, value: Optional[Union[Seconds, str]]) -> Optional[Union[Seconds, str]]:
        if isinstance(value, str):
            if timespan.parse(value) is None:
                raise ValueError("unparseable timespan")
        elif value is not None and not math.isfinite(value):
            raise ValueError("not a finite number")
        return value

    @property
    def claim_checks_requested(self) -> bool:
        """Whether any option needs an object payload to be evaluated."""
        # max_age of 0 disables the age check
        return bool(self.max_age) or any(
            value is not None
            for value in (self.audience, self.issuer, self.subject, self.jwtid, self.nonce)
        )


Model = TypeVar("Model", SignOptions, VerifyOptions)


def validate_sign_options(options: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> SignOptions:
    """Validate a sign option bag given as a mapping and/or keywords."""
    return _validate(SignOptions, SIGN_MESSAGES, options, kwargs)


def validate_verify_options(options: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> VerifyOptions:
    """Validate a verify option bag given as a mapping and/or keywords."""
    return _validate(VerifyOptions, VERIFY_MESSAGES, options, kwargs)


def _validate(
    model: Type[Model],
    messages: Dict[str, str],
    options: Optional[Mapping[str, Any]],
    overrides: Dict[str, Any],
) -> Model:
    if isinstance(options, model) and not overrides:
        return options
    if isinstance(options, BaseModel):
        options = options.model_dump(exclude_defaults=True)
    if options is not None and not isinstance(options, Mapping):
        raise JsonWebTokenError('"options" must be an object', code="INVALID_OPTIONS")

    # Work on a copy; the caller's mapping is never touched
    raw: Dict[str, Any] = dict(options or {})
    raw.update(overrides)

    for name, value in raw.items():
        if name not in messages:
            raise JsonWebTokenError(f'"{name}" is not allowed', code="INVALID_OPTIONS")
        if value is None:
            raise JsonWebTokenError(messages[name], code="INVALID_OPTIONS")

    try:
        return model.model_validate(raw)
    except PydanticValidationError as exc:
        error = exc.errors()[0]
        name = str(error["loc"][0]) if error["loc"] else ""
        if error["type"] == _OPTION_ERROR:
            message = error["msg"]
        else:
            message = messages.get(name, f'"{name}" is invalid')
        raise JsonWebTokenError(message, code="INVALID_OPTIONS", details={"option": name}) from exc
