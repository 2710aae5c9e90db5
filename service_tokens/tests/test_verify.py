"""
Tests for token verification: algorithm policy, signatures and claims.
"""

import re
from datetime import datetime, timezone

import pytest
import structlog
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.utils import base64url_encode

from service_tokens.app import (
    DecodedToken,
    JsonWebTokenError,
    NotBeforeError,
    TokenExpiredError,
    sign,
    verify,
)


def _epoch(seconds):
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


class TestRoundTrip:
    """Test cases for sign followed by verify across algorithm families."""

    @pytest.mark.parametrize("algorithm", ["HS256", "HS384", "HS512"])
    def test_hmac(self, fake_clock, secret, algorithm):
        """Test HMAC algorithms."""
        token = sign({"foo": "bar"}, secret, algorithm=algorithm)

        assert verify(token, secret) == {"foo": "bar", "iat": 60}

    @pytest.mark.parametrize("algorithm", ["RS256", "RS384", "RS512", "PS256", "PS384", "PS512"])
    def test_rsa(self, fake_clock, rsa_private_pem, rsa_public_pem, algorithm):
        """Test RSA PKCS#1 and PSS algorithms."""
        token = sign({"foo": "bar"}, rsa_private_pem, algorithm=algorithm)

        assert verify(token, rsa_public_pem) == {"foo": "bar", "iat": 60}

    @pytest.mark.parametrize("algorithm", ["ES256", "ES384", "ES512"])
    def test_ec(self, fake_clock, ec_keys, algorithm):
        """Test ECDSA algorithms with the curve each one expects."""
        key = ec_keys[algorithm]
        token = sign({"foo": "bar"}, key, algorithm=algorithm)

        assert verify(token, key.public_key()) == {"foo": "bar", "iat": 60}

    def test_private_key_verifies(self, fake_clock, rsa_private_pem):
        """Test that a private key can stand in for its public half."""
        token = sign({"foo": "bar"}, rsa_private_pem, algorithm="RS256")

        assert verify(token, rsa_private_pem)["foo"] == "bar"

    def test_bytes_secret(self, fake_clock, secret):
        """Test that str and bytes secrets are interchangeable."""
        token = sign({}, secret)

        assert verify(token, secret.encode()) == {"iat": 60}

    def test_scalar_payload(self, secret):
        """Test that a text payload verifies as text."""
        assert verify(sign("hello", secret), secret) == "hello"


class TestAlgorithmPolicy:
    """Test cases for algorithm allow-lists."""

    def test_explicit_list_excludes_header_alg(self, secret):
        """Test that the header alg must be in the algorithms option."""
        token = sign({}, secret, algorithm="HS256")

        with pytest.raises(JsonWebTokenError) as exc_info:
            verify(token, secret, algorithms=["HS384", "HS512"])

        assert exc_info.value.message == "invalid algorithm"

    def test_key_kind_excludes_header_alg(self, rsa_public_pem):
        """Test that an HMAC token is refused for an RSA public key."""
        token = sign({}, "secret", algorithm="HS256")

        with pytest.raises(JsonWebTokenError) as exc_info:
            verify(token, rsa_public_pem)

        assert exc_info.value.message == "invalid algorithm"

    def test_explicit_list_still_checks_key(self, secret, rsa_public_pem):
        """Test that listing an algorithm does not bypass the key check."""
        token = sign({}, secret, algorithm="HS256")

        with pytest.raises(JsonWebTokenError) as exc_info:
            verify(token, rsa_public_pem, algorithms=["HS256"])

        assert exc_info.value.message == "secret or public key must be a symmetric key when using HS256"

    def test_rsa_token_with_ec_key(self, rsa_private_pem, ec_public_pem):
        """Test the key requirement message for asymmetric keys."""
        token = sign({}, rsa_private_pem, algorithm="RS256")

        with pytest.raises(JsonWebTokenError) as exc_info:
            verify(token, ec_public_pem, algorithms=["RS256"])

        assert exc_info.value.message == "secret or public key must be an RSA public key when using RS256"

    def test_header_alg_must_be_string(self, make_unsigned_token):
        """Test that a non-string alg is never accepted."""
        token = make_unsigned_token({}, header={"alg": ["none"]})

        with pytest.raises(JsonWebTokenError) as exc_info:
            verify(token, None)

        assert exc_info.value.message == "invalid algorithm"


class TestUnsignedTokens:
    """Test cases for alg none and missing signatures."""

    def test_none_token_without_key(self, fake_clock):
        """Test that an unsigned token verifies with no key."""
        token = sign({"foo": "bar"}, None, algorithm="none")

        assert verify(token, None) == {"foo": "bar", "iat": 60}

    def test_none_token_with_key(self, secret):
        """Test that a key demands a signature."""
        token = sign({"foo": "bar"}, None, algorithm="none")

        with pytest.raises(JsonWebTokenError) as exc_info:
            verify(token, secret)

        assert exc_info.value.message == "jwt signature is required"

    def test_signed_token_without_key(self, secret):
        """Test that a signed token needs a key."""
        token = sign({}, secret)

        with pytest.raises(JsonWebTokenError) as exc_info:
            verify(token, None)

        assert exc_info.value.message == "secret or public key must be provided"

    def test_stripped_signature(self, secret):
        """Test that removing the signature of an HS256 token is caught."""
        header, payload, _ = sign({}, secret).split(".")

        with pytest.raises(JsonWebTokenError) as exc_info:
            verify(f"{header}.{payload}.", None)

        assert exc_info.value.message == "invalid algorithm"

    def test_none_must_be_listed(self, fake_clock):
        """Test that an explicit list without none refuses unsigned tokens."""
        token = sign({}, None, algorithm="none")

        with pytest.raises(JsonWebTokenError) as exc_info:
            verify(token, None, algorithms=["HS256"])

        assert exc_info.value.message == "invalid algorithm"


class TestSignature:
    """Test cases for signature checks."""

    def test_wrong_secret(self, secret):
        """Test that a different secret fails."""
        token = sign({}, secret)

        with pytest.raises(JsonWebTokenError) as exc_info:
            verify(token, "not the secret")

        assert exc_info.value.message == "invalid signature"

    def test_tampered_payload(self, secret):
        """Test that a swapped payload segment fails."""
        header, _, signature = sign({"admin": False}, secret).split(".")
        _, payload, _ = sign({"admin": True}, "other").split(".")

        with pytest.raises(JsonWebTokenError) as exc_info:
            verify(f"{header}.{payload}.{signature}", secret)

        assert exc_info.value.message == "invalid signature"

    def test_wrong_rsa_key(self, rsa_private_pem):
        """Test that a different RSA key fails."""
        token = sign({}, rsa_private_pem, algorithm="RS256")
        other_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

        with pytest.raises(JsonWebTokenError) as exc_info:
            verify(token, other_key.public_key())

        assert exc_info.value.message == "invalid signature"


class TestTokenShape:
    """Test cases for structural checks on the raw token."""

    @pytest.mark.parametrize("token", [None, ""])
    def test_missing(self, secret, token):
        """Test that a token is required."""
        with pytest.raises(JsonWebTokenError) as exc_info:
            verify(token, secret)

        assert exc_info.value.message == "jwt must be provided"

    @pytest.mark.parametrize("token", [10, b"a.b.c", {}])
    def test_not_a_string(self, secret, token):
        """Test that only text tokens are accepted."""
        with pytest.raises(JsonWebTokenError) as exc_info:
            verify(token, secret)

        assert exc_info.value.message == "jwt must be a string"

    @pytest.mark.parametrize("token", ["foo", "a.b", "a.b.c.d"])
    def test_malformed(self, secret, token):
        """Test that a token needs exactly three segments."""
        with pytest.raises(JsonWebTokenError) as exc_info:
            verify(token, secret)

        assert exc_info.value.message == "jwt malformed"

    def test_trailing_space(self, secret):
        """Test that surrounding whitespace is not stripped."""
        token = sign({}, secret)

        with pytest.raises(JsonWebTokenError) as exc_info:
            verify(token + " ", secret)

        assert exc_info.value.message == "invalid token"

    def test_invalid_header_json(self, secret):
        """Test that undecodable segments are an invalid token."""
        with pytest.raises(JsonWebTokenError) as exc_info:
            verify("e30.e30.@@", secret)

        assert exc_info.value.message == "invalid token"

    def test_nested_header(self, make_unsigned_token):
        """Test that a header nested past the parser limit is an invalid token."""
        nested = make_unsigned_token({})
        header = base64url_encode(b"[" * 200000 + b"]" * 200000).decode()

        with pytest.raises(JsonWebTokenError) as exc_info:
            verify(header + nested[nested.index("."):], None)

        assert exc_info.value.message == "invalid token"

    def test_nested_payload(self, make_unsigned_token):
        """Test that a payload nested past the parser limit is kept as text."""
        nested = b"[" * 200000 + b"]" * 200000
        header = make_unsigned_token({}).split(".")[0]
        token = f"{header}.{base64url_encode(nested).decode()}."

        assert verify(token, None) == nested.decode()


class TestPayloadShape:
    """Test cases for non-object payloads reaching claim validation."""

    def test_claim_options_need_object(self, secret):
        """Test that claim checks reject text payloads."""
        token = sign("hello", secret)

        with pytest.raises(JsonWebTokenError) as exc_info:
            verify(token, secret, issuer="issuer")

        assert exc_info.value.message == "invalid token"

    def test_time_options_do_not(self, secret):
        """Test that time-only options leave text payloads alone."""
        token = sign("hello", secret)

        assert verify(token, secret, clock_tolerance=5, ignore_expiration=True) == "hello"


class TestNotBefore:
    """Test cases for the nbf claim."""

    def test_not_active_yet(self, fake_clock, secret):
        """Test that a future nbf is rejected with its instant."""
        token = sign({}, secret, not_before=10)

        with pytest.raises(NotBeforeError) as exc_info:
            verify(token, secret)

        assert exc_info.value.message == "jwt not active"
        assert exc_info.value.date == _epoch(70)
        assert exc_info.value.code == "TOKEN_NOT_ACTIVE"

    def test_active_at_boundary(self, fake_clock, secret):
        """Test that a token is active from its nbf onward."""
        token = sign({}, secret, not_before=10)
        fake_clock.tick(10)

        assert verify(token, secret)["nbf"] == 70

    def test_clock_tolerance(self, fake_clock, secret):
        """Test that tolerance lets an early token through."""
        token = sign({}, secret, not_before=10)

        assert verify(token, secret, clock_tolerance=10)["nbf"] == 70

    def test_ignore_not_before(self, fake_clock, secret):
        """Test that nbf can be skipped."""
        token = sign({}, secret, not_before="1h")

        assert verify(token, secret, ignore_not_before=True)["nbf"] == 3660

    def test_invalid_value(self, make_unsigned_token):
        """Test that a non-numeric nbf is rejected."""
        token = make_unsigned_token({"nbf": "soon"})

        with pytest.raises(JsonWebTokenError) as exc_info:
            verify(token, None)

        assert exc_info.value.message == "invalid nbf value"


class TestExpiration:
    """Test cases for the exp claim."""

    def test_valid_before_exp(self, fake_clock, secret):
        """Test the last valid second."""
        token = sign({}, secret, expires_in=10)
        fake_clock.tick(9)

        assert verify(token, secret)["exp"] == 70

    def test_expired_at_exp(self, fake_clock, secret):
        """Test that a token is expired at exactly exp."""
        token = sign({}, secret, expires_in=10)
        fake_clock.tick(10)

        with pytest.raises(TokenExpiredError) as exc_info:
            verify(token, secret)

        assert exc_info.value.message == "jwt expired"
        assert exc_info.value.expired_at == _epoch(70)
        assert exc_info.value.code == "TOKEN_EXPIRED"

    def test_clock_tolerance(self, fake_clock, secret):
        """Test that tolerance extends exp by the same amount."""
        token = sign({}, secret, expires_in=10)
        fake_clock.tick(14)

        assert verify(token, secret, clock_tolerance=5)["exp"] == 70

        fake_clock.tick(1)
        with pytest.raises(TokenExpiredError):
            verify(token, secret, clock_tolerance=5)

    def test_clock_timestamp(self, fake_clock, secret):
        """Test that clock_timestamp replaces the current time."""
        token = sign({}, secret, expires_in=10)

        with pytest.raises(TokenExpiredError):
            verify(token, secret, clock_timestamp=100)
        assert verify(token, secret, clock_timestamp=65)["exp"] == 70

    def test_ignore_expiration(self, fake_clock, secret):
        """Test that exp can be skipped."""
        token = sign({}, secret, expires_in=10)
        fake_clock.tick(100)

        assert verify(token, secret, ignore_expiration=True)["exp"] == 70

    def test_invalid_value(self, make_unsigned_token):
        """Test that a non-numeric exp is rejected."""
        token = make_unsigned_token({"exp": "later"})

        with pytest.raises(JsonWebTokenError) as exc_info:
            verify(token, None)

        assert exc_info.value.message == "invalid exp value"

    def test_null_exp_from_non_finite_value(self, fake_clock, secret):
        """Test that a NaN exp signed as null fails verification."""
        token = sign({"exp": float("nan")}, secret)

        with pytest.raises(JsonWebTokenError) as exc_info:
            verify(token, secret)

        assert exc_info.value.message == "invalid exp value"

    def test_error_response(self, fake_clock, secret):
        """Test the error envelope carried by an expired token."""
        token = sign({}, secret, expires_in=10)
        fake_clock.tick(10)

        with pytest.raises(TokenExpiredError) as exc_info:
            verify(token, secret)

        response = exc_info.value.to_response()
        assert response.code == "TOKEN_EXPIRED"
        assert response.message == "jwt expired"
        assert response.details == {"expired_at": "1970-01-01T00:01:10+00:00"}


class TestMaxAge:
    """Test cases for the max_age option."""

    def test_within_max_age(self, fake_clock, secret):
        """Test a token younger than max_age."""
        token = sign({}, secret)
        fake_clock.tick(7)

        assert verify(token, secret, max_age=8) == {"iat": 60}

    def test_exceeded(self, fake_clock, secret):
        """Test a token that reached max_age."""
        token = sign({}, secret)
        fake_clock.tick(8)

        with pytest.raises(TokenExpiredError) as exc_info:
            verify(token, secret, max_age="8s")

        assert exc_info.value.message == "maxAge exceeded"
        assert exc_info.value.expired_at == _epoch(68)

    def test_clock_tolerance(self, fake_clock, secret):
        """Test that tolerance extends max_age."""
        token = sign({}, secret)
        fake_clock.tick(9)

        assert verify(token, secret, max_age=8, clock_tolerance=2) == {"iat": 60}

    def test_iat_required(self, secret):
        """Test that max_age needs an iat claim."""
        token = sign({}, secret, no_timestamp=True)

        with pytest.raises(JsonWebTokenError) as exc_info:
            verify(token, secret, max_age="1h")

        assert exc_info.value.message == "iat required when maxAge is specified"

    @pytest.mark.parametrize("max_age", [0, 0.0])
    def test_zero_disables_check(self, fake_clock, secret, max_age):
        """Test that a zero max_age skips the age check entirely."""
        token = sign({}, secret, no_timestamp=True)
        fake_clock.tick(1000)

        assert verify(token, secret, max_age=max_age) == {}

    def test_zero_allows_scalar_payloads(self, secret):
        """Test that a zero max_age does not demand an object payload."""
        assert verify(sign("hello", secret), secret, max_age=0) == "hello"

    def test_expiration_checked_first(self, fake_clock, secret):
        """Test that exp is reported ahead of max_age."""
        token = sign({}, secret, expires_in=5)
        fake_clock.tick(6)

        with pytest.raises(TokenExpiredError) as exc_info:
            verify(token, secret, max_age=1)

        assert exc_info.value.message == "jwt expired"

    def test_max_age_after_ignored_expiration(self, fake_clock, secret):
        """Test that max_age still applies when exp is ignored."""
        token = sign({}, secret, expires_in=5)
        fake_clock.tick(6)

        with pytest.raises(TokenExpiredError) as exc_info:
            verify(token, secret, max_age=1, ignore_expiration=True)

        assert exc_info.value.message == "maxAge exceeded"


class TestAudience:
    """Test cases for the audience option."""

    @pytest.mark.parametrize("claim,expected", [
        ("urn:foo", "urn:foo"),
        ("urn:foo", ["urn:bar", "urn:foo"]),
        (["urn:foo", "urn:bar"], "urn:bar"),
        (["urn:foo", "urn:bar"], ["urn:baz", "urn:foo"]),
        ("urn:foo", re.compile("^urn:f")),
        (["urn:x", "urn:foo"], [re.compile("^urn:nope"), re.compile("foo$")]),
    ])
    def test_matches(self, secret, claim, expected):
        """Test that any claim value matching any matcher passes."""
        token = sign({}, secret, audience=claim)

        assert verify(token, secret, audience=expected)["aud"] == claim

    @pytest.mark.parametrize("audience,expected", [
        ("urn:no-match", "urn:no-match"),
        (re.compile("^urn:no-match$"), "/^urn:no-match$/"),
        ([re.compile("^urn:no-match-1$"), re.compile("^urn:no-match-2$")], "/^urn:no-match-1$/ or /^urn:no-match-2$/"),
        ([re.compile("^urn:no-match$"), "urn:no-match"], "/^urn:no-match$/ or urn:no-match"),
    ])
    def test_mismatch(self, secret, audience, expected):
        """Test the message listing every matcher, patterns in slashes."""
        token = sign({}, secret, audience="urn:foo")

        with pytest.raises(JsonWebTokenError) as exc_info:
            verify(token, secret, audience=audience)

        assert exc_info.value.message == f"jwt audience invalid. expected: {expected}"

    def test_missing_claim(self, secret):
        """Test that a token without aud fails an audience check."""
        token = sign({}, secret)

        with pytest.raises(JsonWebTokenError) as exc_info:
            verify(token, secret, audience="urn:foo")

        assert exc_info.value.message == "jwt audience invalid. expected: urn:foo"

    def test_pattern_search(self, secret):
        """Test that patterns are searched, not fully matched."""
        token = sign({}, secret, audience="https://api.example.com/v1")

        assert verify(token, secret, audience=re.compile("example"))["aud"] == "https://api.example.com/v1"


class TestIdentityClaims:
    """Test cases for issuer, subject, jwtid and nonce."""

    @pytest.fixture
    def token(self, secret):
        return sign({"nonce": "abc"}, secret, issuer="foo", subject="sub", jwtid="jti")

    def test_all_match(self, token, secret):
        """Test a token meeting every identity check."""
        payload = verify(token, secret, issuer=["bar", "foo"], subject="sub", jwtid="jti", nonce="abc")

        assert payload["iss"] == "foo"

    @pytest.mark.parametrize("options,message", [
        ({"issuer": "bar"}, "jwt issuer invalid. expected: bar"),
        ({"issuer": ["bar", "baz"]}, "jwt issuer invalid. expected: bar,baz"),
        ({"subject": "other"}, "jwt subject invalid. expected: other"),
        ({"jwtid": "other"}, "jwt jwtid invalid. expected: other"),
        ({"nonce": "other"}, "jwt nonce invalid. expected: other"),
    ])
    def test_mismatch(self, token, secret, options, message):
        """Test the message for each identity claim."""
        with pytest.raises(JsonWebTokenError) as exc_info:
            verify(token, secret, options)

        assert exc_info.value.message == message

    def test_first_failure_wins(self, token, secret):
        """Test that rules run in order and stop at the first failure."""
        with pytest.raises(JsonWebTokenError) as exc_info:
            verify(token, secret, issuer="bar", subject="other", audience="urn:foo")

        assert exc_info.value.message == "jwt audience invalid. expected: urn:foo"


class TestResult:
    """Test cases for the verify result."""

    def test_complete(self, fake_clock, secret):
        """Test that complete returns header, payload and signature."""
        token = sign({"foo": "bar"}, secret, keyid="key-1")

        decoded = verify(token, secret, complete=True)

        assert isinstance(decoded, DecodedToken)
        assert decoded.header == {"alg": "HS256", "typ": "JWT", "kid": "key-1"}
        assert decoded.payload == {"foo": "bar", "iat": 60}
        assert decoded.signature == token.split(".")[2]

    def test_repeatable(self, fake_clock, secret):
        """Test that verifying twice gives the same result."""
        token = sign({"foo": "bar"}, secret, expires_in=10)

        assert verify(token, secret) == verify(token, secret)

    def test_options_not_modified(self, secret):
        """Test that the caller's option mapping is left untouched."""
        token = sign({}, secret, audience="urn:foo")
        options = {"audience": ["urn:foo"], "algorithms": ["HS256"]}

        verify(token, secret, options)

        assert options == {"audience": ["urn:foo"], "algorithms": ["HS256"]}

    @pytest.mark.parametrize("key", ["shhhhh", "not the secret"])
    def test_log_context_cleared(self, key):
        """Test that the token's kid and alg do not outlive the call."""
        token = sign({}, "shhhhh", keyid="key-1")

        try:
            verify(token, key)
        except JsonWebTokenError:
            pass

        assert "kid" not in structlog.contextvars.get_contextvars()
        assert "alg" not in structlog.contextvars.get_contextvars()

    def test_resolver_needs_async(self, secret):
        """Test that key resolvers are refused by the synchronous call."""
        token = sign({}, secret)

        with pytest.raises(JsonWebTokenError) as exc_info:
            verify(token, lambda header, done: done(None, secret))

        assert exc_info.value.message == (
            "verify must be called asynchronous if secret or public key is provided as a callback"
        )
