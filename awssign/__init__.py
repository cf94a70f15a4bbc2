# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""AWS Signature Version 4 request signing.

The signing core is three pure functions applied in order::

    creq = build_canonical_request(raw_request_text)
    sts = build_string_to_sign(region, service, creq)
    authorization = build_authorization(sts, creq, key_id, secret)

:func:`sign_request` wraps them for callers that hold a URL, headers and a
body instead of a raw request message.
"""

from awssign.canonical import (
    RawRequest,
    build_canonical_request,
    canonical_request,
    parse_raw_request,
)
from awssign.request import Credentials, SigningError, sign_request
from awssign.signing import (
    ALGORITHM,
    build_authorization,
    build_string_to_sign,
    derive_signing_key,
)


__version__ = "0.1.0"

__all__ = [
    "ALGORITHM",
    "Credentials",
    "RawRequest",
    "SigningError",
    "build_authorization",
    "build_canonical_request",
    "build_string_to_sign",
    "canonical_request",
    "derive_signing_key",
    "parse_raw_request",
    "sign_request",
]
