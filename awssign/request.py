# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Attach SigV4 headers to an outgoing request.

The canonical request, string to sign and Authorization builders are pure
text transformations.  This module does the caller's part: it stamps the
request with ``X-Amz-Date``, ``X-Amz-Content-Sha256`` and (for temporary
credentials) ``X-Amz-Security-Token`` before canonicalization, so that
the values sent are exactly the values signed.
"""

from __future__ import annotations

import logging
import urllib.parse
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime

from awssign.canonical import RawRequest, canonical_request, hash_payload
from awssign.signing import build_authorization, build_string_to_sign


logger = logging.getLogger(__name__)

_AMZ_DATE_FORMAT = "%Y%m%dT%H%M%SZ"

_DEFAULT_PORTS = {"http": 80, "https": 443}


class SigningError(Exception):
    """Raised when a request cannot be signed."""


@dataclass(frozen=True)
class Credentials:
    """AWS credentials used to sign requests.

    Attributes:
        access_key_id: AWS access key ID.
        secret_access_key: AWS secret access key.
        session_token: Session token for temporary credentials, or empty.
    """

    access_key_id: str
    secret_access_key: str
    session_token: str = ""


def format_amz_date(moment: datetime) -> str:
    """Format a datetime as an x-amz-date timestamp (YYYYMMDDTHHMMSSZ).

    Naive datetimes are taken to be UTC.
    """
    if moment.tzinfo is not None:
        moment = moment.astimezone(UTC)
    return moment.strftime(_AMZ_DATE_FORMAT)


def host_header(url: str) -> str:
    """Return the Host header value for a URL.

    The port is omitted when it is the scheme's default.
    """
    split = urllib.parse.urlsplit(url)
    host = split.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    port = split.port
    if port is not None and port != _DEFAULT_PORTS.get(split.scheme):
        host = f"{host}:{port}"
    return host


def _has_header(headers: list[tuple[str, str]], name: str) -> bool:
    return any(header_name.lower() == name for header_name, _ in headers)


def sign_request(
    *,
    method: str,
    url: str,
    credentials: Credentials,
    region: str,
    service: str,
    headers: Iterable[tuple[str, str]] = (),
    body: bytes = b"",
    timestamp: datetime | None = None,
    normalize_path: bool = True,
) -> list[tuple[str, str]]:
    """Sign a request and return the headers to send with it.

    Args:
        method: HTTP method.
        url: Absolute request URL.
        credentials: Credentials to sign with.
        region: AWS region.
        service: AWS service name.
        headers: Headers the caller already intends to send.  Any
            existing x-amz-date / x-amz-content-sha256 /
            x-amz-security-token headers are replaced.
        body: Request body.
        timestamp: Signing time.  Defaults to now.
        normalize_path: Passed to canonicalization.  False for S3.

    Returns:
        All request headers, including the added signing headers and
        ``Authorization`` as the last entry.

    Raises:
        SigningError: If the URL is not absolute or the method is empty
            or padded with whitespace.
    """
    split = urllib.parse.urlsplit(url)
    if not split.scheme or not split.hostname:
        raise SigningError(f"Not an absolute URL: {url!r}")
    if not method or method != method.strip():
        raise SigningError(f"Invalid method: {method!r}")

    amz_date = format_amz_date(timestamp or datetime.now(UTC))
    payload_hash = hash_payload(body)

    replaced = {"x-amz-date", "x-amz-content-sha256", "x-amz-security-token"}
    signed: list[tuple[str, str]] = [
        (name, value)
        for name, value in headers
        if name.lower() not in replaced and name.lower() != "authorization"
    ]
    if not _has_header(signed, "host"):
        signed.insert(0, ("Host", host_header(url)))
    signed.append(("X-Amz-Date", amz_date))
    signed.append(("X-Amz-Content-Sha256", payload_hash))
    if credentials.session_token:
        signed.append(("X-Amz-Security-Token", credentials.session_token))

    target = split.path or "/"
    if split.query:
        target = f"{target}?{split.query}"

    creq = canonical_request(
        RawRequest(method, target, tuple(signed), body),
        normalize_path=normalize_path,
    )
    string_to_sign = build_string_to_sign(region, service, creq)
    authorization = build_authorization(
        string_to_sign,
        creq,
        credentials.access_key_id,
        credentials.secret_access_key,
    )
    logger.debug(
        "Signed %s %s (scope %s)",
        method,
        url,
        string_to_sign.split("\n")[2],
    )

    signed.append(("Authorization", authorization))
    return signed
