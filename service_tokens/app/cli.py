"""
Command line access to the token service.

Signs payloads, verifies tokens and decodes tokens without verification.
Results are printed as JSON on stdout; failures are printed as an error
response on stderr with exit status 1.
"""

import argparse
import dataclasses
import json
import re
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from shared.config import TokenServiceConfig, get_config
from shared.errors import ConfigurationError, ServiceException, ValidationError
from shared.logging import configure_logging, get_logger, set_request_id

from .decoding.decoder import DecodedToken, decode
from .issuer import sign
from .verifier import verify

logger = get_logger("tokens.cli")


def _timespan_arg(text: str) -> Union[int, str]:
    """Whole numbers are seconds; anything else is a timespan string."""
    try:
        return int(text)
    except ValueError:
        return text


def _one_or_many(values: Optional[List[Any]]) -> Any:
    if not values:
        return None
    return values[0] if len(values) == 1 else list(values)


def _load_key(args: argparse.Namespace, config: TokenServiceConfig) -> Any:
    if args.key is not None:
        return args.key
    key_file = args.key_file or config.default_key_file
    if key_file is None:
        return None
    try:
        return Path(key_file).read_bytes()
    except OSError as exc:
        raise ConfigurationError(f"Unable to read key file {key_file}", details={"error": str(exc)}) from exc


def _jsonable(result: Any) -> Any:
    if isinstance(result, DecodedToken):
        return dataclasses.asdict(result)
    return result


def _compact(options: Dict[str, Any]) -> Dict[str, Any]:
    return {name: value for name, value in options.items() if value is not None and value is not False}


def run_sign(args: argparse.Namespace, config: TokenServiceConfig) -> Any:
    try:
        payload = json.loads(args.payload)
    except ValueError as exc:
        raise ValidationError("payload must be valid JSON", details={"error": str(exc)}) from exc

    options = _compact({
        "algorithm": args.algorithm or config.default_algorithm,
        "expires_in": args.expires_in,
        "not_before": args.not_before,
        "audience": _one_or_many(args.audience),
        "issuer": args.issuer,
        "subject": args.subject,
        "jwtid": args.jwtid,
        "keyid": args.keyid,
        "no_timestamp": args.no_timestamp,
    })
    return sign(payload, _load_key(args, config), options)


def run_verify(args: argparse.Namespace, config: TokenServiceConfig) -> Any:
    audience = list(args.audience or []) + [re.compile(pattern) for pattern in args.audience_pattern or []]
    options = _compact({
        "algorithms": args.algorithms,
        "audience": _one_or_many(audience),
        "issuer": _one_or_many(args.issuer),
        "subject": args.subject,
        "jwtid": args.jwtid,
        "nonce": args.nonce,
        "max_age": args.max_age,
        "ignore_expiration": args.ignore_expiration,
        "ignore_not_before": args.ignore_not_before,
        "complete": args.complete,
    })
    tolerance = args.clock_tolerance if args.clock_tolerance is not None else config.clock_tolerance
    if tolerance:
        options["clock_tolerance"] = tolerance
    return verify(args.token, _load_key(args, config), options)


def run_decode(args: argparse.Namespace, config: TokenServiceConfig) -> Any:
    decoded = decode(args.token, complete=args.complete)
    if decoded is None:
        raise ValidationError("invalid token")
    return decoded


def _add_key_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--key", help="Secret or PEM key text")
    group.add_argument("--key-file", help="Path to a secret or PEM key file")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="service-tokens", description=__doc__)
    subcommands = parser.add_subparsers(dest="command", required=True)

    sign_parser = subcommands.add_parser("sign", help="Issue a token for a JSON payload")
    _add_key_arguments(sign_parser)
    sign_parser.add_argument("--algorithm", help="Signing algorithm (defaults to ACCESS_DEFAULT_ALGORITHM)")
    sign_parser.add_argument("--expires-in", type=_timespan_arg, help="Seconds or timespan, e.g. 1h")
    sign_parser.add_argument("--not-before", type=_timespan_arg, help="Seconds or timespan, e.g. 10m")
    sign_parser.add_argument("--audience", nargs="+")
    sign_parser.add_argument("--issuer")
    sign_parser.add_argument("--subject")
    sign_parser.add_argument("--jwtid")
    sign_parser.add_argument("--keyid")
    sign_parser.add_argument("--no-timestamp", action="store_true")
    sign_parser.add_argument("payload", help="JSON payload")
    sign_parser.set_defaults(handler=run_sign)

    verify_parser = subcommands.add_parser("verify", help="Verify a token and print its payload")
    _add_key_arguments(verify_parser)
    verify_parser.add_argument("--algorithms", nargs="+")
    verify_parser.add_argument("--audience", nargs="+")
    verify_parser.add_argument("--audience-pattern", nargs="+", help="Regular expressions matched against aud")
    verify_parser.add_argument("--issuer", nargs="+")
    verify_parser.add_argument("--subject")
    verify_parser.add_argument("--jwtid")
    verify_parser.add_argument("--nonce")
    verify_parser.add_argument("--max-age", type=_timespan_arg)
    verify_parser.add_argument("--clock-tolerance", type=float)
    verify_parser.add_argument("--ignore-expiration", action="store_true")
    verify_parser.add_argument("--ignore-not-before", action="store_true")
    verify_parser.add_argument("--complete", action="store_true")
    verify_parser.add_argument("token")
    verify_parser.set_defaults(handler=run_verify)

    decode_parser = subcommands.add_parser("decode", help="Decode a token without verifying it")
    decode_parser.add_argument("--complete", action="store_true")
    decode_parser.add_argument("token")
    decode_parser.set_defaults(handler=run_decode)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main function for the token command line tool."""
    config = get_config()
    configure_logging(config.service_name, config.log_level)
    set_request_id()

    args = build_parser().parse_args(argv)
    try:
        result = args.handler(args, config)
    except ServiceException as exc:
        logger.info("Command failed", command=args.command, code=exc.code)
        print(exc.to_response().model_dump_json(), file=sys.stderr)
        return 1

    indent = 2 if config.pretty_output else None
    print(json.dumps(_jsonable(result), indent=indent, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
