"""
Ordered claim checks run after the signature has been accepted.

Rules are evaluated in a fixed order and the first failure ends the run:
format, nbf, exp, max_age, audience, issuer, subject, jwtid, nonce.
"""

from __future__ import annotations

import re
from typing import Any, Callable, List, Sequence

from .. import timespan
from ..clock import Clock
from ..errors import JsonWebTokenError, NotBeforeError, TokenExpiredError, instant
from ..options.schema import VerifyOptions


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else [value]


def _matcher_text(matcher: Any) -> str:
    return f"/{matcher.pattern}/" if isinstance(matcher, re.Pattern) else str(matcher)


class ClaimsValidator:
    """Fail-fast validation of registered claims against verify options."""

    def __init__(self, options: VerifyOptions, clock: Clock):
        self.options = options
        self.clock = clock
        self._rules: Sequence[Callable[[dict], None]] = (
            self._check_not_before,
            self._check_expiration,
            self._check_max_age,
            self._check_audience,
            self._check_issuer,
            self._check_subject,
            self._check_jwtid,
            self._check_nonce,
        )

    def validate(self, payload: Any) -> Any:
        """Run every rule over ``payload`` and return it unchanged."""
        if not isinstance(payload, dict):
            if self.options.claim_checks_requested:
                raise JsonWebTokenError("invalid token")
            return payload

        for rule in self._rules:
            rule(payload)
        return payload

    def _check_not_before(self, payload: dict) -> None:
        if "nbf" not in payload or self.options.ignore_not_before:
            return
        nbf = payload["nbf"]
        if not is_number(nbf):
            raise JsonWebTokenError("invalid nbf value")
        if self.clock.is_before(nbf):
            raise NotBeforeError("jwt not active", instant(nbf))

    def _check_expiration(self, payload: dict) -> None:
        if "exp" not in payload or self.options.ignore_expiration:
            return
        exp = payload["exp"]
        if not is_number(exp):
            raise JsonWebTokenError("invalid exp value")
        if self.clock.has_passed(exp):
            raise TokenExpiredError("jwt expired", instant(exp))

    def _check_max_age(self, payload: dict) -> None:
        if not self.options.max_age:
            return
        iat = payload.get("iat")
        if not is_number(iat):
            raise JsonWebTokenError("iat required when maxAge is specified")

        deadline = timespan.resolve(self.options.max_age, iat)
        if self.clock.has_passed(deadline):
            raise TokenExpiredError("maxAge exceeded", instant(deadline))

    def _check_audience(self, payload: dict) -> None:
        if self.options.audience is None:
            return
        matchers = _as_list(self.options.audience)
        targets = _as_list(payload.get("aud"))

        for target in targets:
            for matcher in matchers:
                if isinstance(matcher, re.Pattern):
                    if isinstance(target, str) and matcher.search(target):
                        return
                elif matcher == target:
                    return

        expected = " or ".join(_matcher_text(matcher) for matcher in matchers)
        raise JsonWebTokenError(f"jwt audience invalid. expected: {expected}")

    def _check_issuer(self, payload: dict) -> None:
        issuer = self.options.issuer
        if issuer is None:
            return
        iss = payload.get("iss")
        if isinstance(issuer, list):
            valid = iss in issuer
            expected = ",".join(issuer)
        else:
            valid = iss == issuer
            expected = issuer
        if not valid:
            raise JsonWebTokenError(f"jwt issuer invalid. expected: {expected}")

    def _check_subject(self, payload: dict) -> None:
        if self.options.subject is not None and payload.get("sub") != self.options.subject:
            raise JsonWebTokenError(f"jwt subject invalid. expected: {self.options.subject}")

    def _check_jwtid(self, payload: dict) -> None:
        if self.options.jwtid is not None and payload.get("jti") != self.options.jwtid:
            raise JsonWebTokenError(f"jwt jwtid invalid. expected: {self.options.jwtid}")

    def _check_nonce(self, payload: dict) -> None:
        if self.options.nonce is not None and payload.get("nonce") != self.options.nonce:
            raise JsonWebTokenError(f"jwt nonce invalid. expected: {self.options.nonce}")
