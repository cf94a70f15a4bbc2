# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""SigV4 string-to-sign and Authorization header construction.

The stages hand data to each other as text only: the string-to-sign is
derived from the canonical request, and the Authorization value re-reads
the credential scope (third line of the string-to-sign) and the signed
header list (second-to-last line of the canonical request).  Both layouts
are fixed by :mod:`awssign.canonical` and :func:`build_string_to_sign`.
"""

from __future__ import annotations

import hashlib
import hmac


ALGORITHM = "AWS4-HMAC-SHA256"

# Last component of every credential scope
TERMINATOR = "aws4_request"

DATE_HEADER = "x-amz-date"

KEY_PREFIX = "AWS4"

_DATE_LINE_PREFIX = DATE_HEADER + ":"


# ---------------------------------------------------------------------------
# String to sign
# ---------------------------------------------------------------------------


def credential_scope(date_stamp: str, region: str, service: str) -> str:
    """Build a credential scope (date/region/service/aws4_request)."""
    return f"{date_stamp}/{region}/{service}/{TERMINATOR}"


def request_timestamp(canonical_request: str) -> str:
    """Return the x-amz-date value from a canonical request.

    The first header line starting with ``x-amz-date:`` wins.  Returns an
    empty string when there is no such line.
    """
    for line in canonical_request.split("\n"):
        if line.startswith(_DATE_LINE_PREFIX):
            return line[len(_DATE_LINE_PREFIX) :]
    return ""


def build_string_to_sign(
    region: str, service: str, canonical_request: str
) -> str:
    """Build the SigV4 string to sign.

    Args:
        region: AWS region, e.g. ``us-east-1``.
        service: AWS service name, e.g. ``iam``.
        canonical_request: Output of
            :func:`awssign.canonical.build_canonical_request`.  Must carry
            an ``x-amz-date`` header; without one the timestamp line is
            empty and the resulting signature will be rejected.

    Returns:
        String to sign.
    """
    timestamp = request_timestamp(canonical_request)
    return "\n".join(
        [
            ALGORITHM,
            timestamp,
            credential_scope(timestamp[:8], region, service),
            hashlib.sha256(canonical_request.encode("utf-8")).hexdigest(),
        ]
    )


# ---------------------------------------------------------------------------
# Signing
# ---------------------------------------------------------------------------


def _hmac_sha256(key: bytes, msg: str | bytes) -> bytes:
    """HMAC-SHA256 helper."""
    if isinstance(msg, str):
        msg = msg.encode("utf-8")
    return hmac.new(key, msg, hashlib.sha256).digest()


def derive_signing_key(
    secret_key: str,
    date_stamp: str,
    region: str,
    service: str,
    terminator: str = TERMINATOR,
) -> bytes:
    """Derive the SigV4 signing key.

    Args:
        secret_key: AWS secret access key.
        date_stamp: Date string (YYYYMMDD).
        region: AWS region.
        service: AWS service name.
        terminator: Final scope component.

    Returns:
        Derived signing key bytes.
    """
    k_date = _hmac_sha256((KEY_PREFIX + secret_key).encode("utf-8"), date_stamp)
    k_region = _hmac_sha256(k_date, region)
    k_service = _hmac_sha256(k_region, service)
    return _hmac_sha256(k_service, terminator)


def sign(signing_key: bytes, string_to_sign: str) -> str:
    """Compute the hex-encoded SigV4 signature of a string to sign."""
    return hmac.new(
        signing_key, string_to_sign.encode("utf-8"), hashlib.sha256
    ).hexdigest()


def build_authorization(
    string_to_sign: str,
    canonical_request: str,
    access_key_id: str,
    access_key_secret: str,
) -> str:
    """Build the Authorization header value.

    Args:
        string_to_sign: Output of :func:`build_string_to_sign`.
        canonical_request: The canonical request the string to sign was
            built from.
        access_key_id: AWS access key ID.
        access_key_secret: AWS secret access key.

    Returns:
        ``AWS4-HMAC-SHA256 Credential=..., SignedHeaders=..., Signature=...``

    Raises:
        ValueError: If the string to sign has no credential scope line or
            the scope does not have four components.
    """
    sts_lines = string_to_sign.split("\n")
    if len(sts_lines) < 3:
        raise ValueError("String to sign has no credential scope line")
    scope = sts_lines[2]
    scope_parts = scope.split("/")
    if len(scope_parts) != 4:
        raise ValueError(f"Malformed credential scope: {scope!r}")
    date_stamp, region, service, terminator = scope_parts

    signing_key = derive_signing_key(
        access_key_secret, date_stamp, region, service, terminator
    )
    signature = sign(signing_key, string_to_sign)

    creq_lines = canonical_request.split("\n")
    signed_headers = creq_lines[-2] if len(creq_lines) >= 2 else ""

    return (
        f"{ALGORITHM} "
        f"Credential={access_key_id}/{scope}, "
        f"SignedHeaders={signed_headers}, "
        f"Signature={signature}"
    )
