# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Command-line front end for the SigV4 signing stages.

Each subcommand reads a raw HTTP request message from a file (or ``-`` for
stdin) and prints the output of one signing stage:

    awssign canonical request.txt
    awssign string-to-sign --region us-east-1 --service iam request.txt
    awssign authorization --region us-east-1 --service iam request.txt

The request must already carry an ``X-Amz-Date`` header.  Credentials for
``authorization`` are resolved like the AWS CLI does (environment, then
``~/.aws/credentials``, then ``~/.aws/config``).  A ``.env`` file in the
current directory is loaded first.
"""

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from awssign.canonical import build_canonical_request
from awssign.config import ConfigError, get_defaults, require_credentials
from awssign.logging import SecretFilter, configure_logging
from awssign.signing import build_authorization, build_string_to_sign


logger = logging.getLogger(__name__)


class RequestError(Exception):
    """Raised when the input request cannot be read or parsed."""


def _read_request(source: str) -> bytes:
    if source == "-":
        return sys.stdin.buffer.read()
    try:
        return Path(source).read_bytes()
    except OSError as e:
        raise RequestError(f"Cannot read {source}: {e}") from e


def _canonical(args: argparse.Namespace) -> str:
    creq = build_canonical_request(
        _read_request(args.request), normalize_path=not args.no_normalize_path
    )
    if not creq:
        raise RequestError(f"{args.request}: not a well-formed HTTP request")
    return creq


def cmd_canonical(args: argparse.Namespace) -> int:
    """Print the canonical request."""
    print(_canonical(args))
    return 0


def cmd_string_to_sign(args: argparse.Namespace) -> int:
    """Print the string to sign."""
    creq = _canonical(args)
    print(build_string_to_sign(args.region, args.service, creq))
    return 0


def cmd_authorization(args: argparse.Namespace) -> int:
    """Print the Authorization header value."""
    creq = _canonical(args)
    config = get_defaults(profile=args.profile)
    credentials = require_credentials(config)
    SecretFilter.register_secret(
        credentials.secret_access_key, credentials.session_token
    )

    region = args.region or config.region
    if not region:
        raise ConfigError("No region given and none configured")

    string_to_sign = build_string_to_sign(region, args.service, creq)
    logger.debug("Canonical request:\n%s", creq)
    logger.debug("String to sign:\n%s", string_to_sign)
    print(
        build_authorization(
            string_to_sign,
            creq,
            credentials.access_key_id,
            credentials.secret_access_key,
        )
    )
    return 0


def _add_request_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "request",
        help="File holding the raw HTTP request, or - for stdin",
    )
    parser.add_argument(
        "--no-normalize-path",
        action="store_true",
        help="Keep dot segments and repeated slashes (required for S3)",
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Args:
        argv: Arguments (without program name).  Defaults to sys.argv.

    Returns:
        Exit code.
    """
    parser = argparse.ArgumentParser(
        prog="awssign",
        description="Compute AWS Signature Version 4 signing artifacts",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    canonical_parser = subparsers.add_parser(
        "canonical", help="Print the canonical request"
    )
    _add_request_argument(canonical_parser)
    canonical_parser.set_defaults(func=cmd_canonical)

    sts_parser = subparsers.add_parser(
        "string-to-sign", help="Print the string to sign"
    )
    _add_request_argument(sts_parser)
    sts_parser.add_argument("--region", required=True, help="AWS region")
    sts_parser.add_argument("--service", required=True, help="Service name")
    sts_parser.set_defaults(func=cmd_string_to_sign)

    auth_parser = subparsers.add_parser(
        "authorization", help="Print the Authorization header value"
    )
    _add_request_argument(auth_parser)
    auth_parser.add_argument(
        "--region", help="AWS region (defaults to the profile's region)"
    )
    auth_parser.add_argument("--service", required=True, help="Service name")
    auth_parser.add_argument("--profile", help="Profile to take keys from")
    auth_parser.set_defaults(func=cmd_authorization)

    args = parser.parse_args(argv)

    configure_logging(level=logging.DEBUG if args.debug else logging.WARNING)

    dotenv_path = Path.cwd() / ".env"
    if dotenv_path.exists():
        load_dotenv(dotenv_path)
        logger.debug("Loaded .env from %s", dotenv_path)

    try:
        return args.func(args)
    except (RequestError, ConfigError) as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
