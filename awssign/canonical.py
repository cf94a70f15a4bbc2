# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Canonical request construction for AWS Signature Version 4.

Turns a raw HTTP request message into the six-line "canonical request"
that SigV4 signs:

    METHOD
    canonical URI
    canonical query string
    canonical headers (one ``name:value`` line each, newline-terminated)
    signed header names (``;``-joined)
    hex SHA-256 of the body

The output is fixed regardless of header order, query parameter order and
incidental whitespace in the input.  Everything here is a pure function
over its arguments.
"""

from __future__ import annotations

import hashlib
import re
import urllib.parse
from dataclasses import dataclass


_AWS_UNRESERVED = frozenset(
    b"ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_.~"
)

# RFC 7230 token characters (method and header names)
_TOKEN_RE = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")

_VERSION_RE = re.compile(r"HTTP/\d+\.\d+")

# End of the header block: first empty line (CRLF or bare LF)
_HEADER_END_RE = re.compile(rb"\r?\n\r?\n")

_LINE_SPLIT_RE = re.compile(r"\r?\n")

_MULTIPLE_SPACES_RE = re.compile(r" {2,}")

SHA256_EMPTY = hashlib.sha256(b"").hexdigest()


# ---------------------------------------------------------------------------
# Raw request
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RawRequest:
    """An unsigned HTTP request.

    Attributes:
        method: Request method token, used verbatim.
        target: Request target (path plus optional ``?query``).
        headers: Header (name, value) pairs in emission order.  Names are
            case-insensitive and may repeat.
        body: Raw body bytes.
    """

    method: str
    target: str
    headers: tuple[tuple[str, str], ...] = ()
    body: bytes = b""


def parse_raw_request(raw: str | bytes) -> RawRequest | None:
    """Parse an HTTP/1.x request message.

    A header continuation line (leading space or tab) becomes a further
    value of the previous header, so the canonical header block
    comma-joins it with the values before it.  When ``Content-Length`` is
    present the body is exactly that many bytes; otherwise the body is
    everything after the header block.

    Args:
        raw: Request message text.  ``str`` input is UTF-8 encoded.

    Returns:
        The parsed request, or None if the message is malformed or
        incomplete.
    """
    data = raw.encode("utf-8") if isinstance(raw, str) else raw

    end = _HEADER_END_RE.search(data)
    if end is None:
        return None
    try:
        head = data[: end.start()].decode("utf-8")
    except UnicodeDecodeError:
        return None

    lines = _LINE_SPLIT_RE.split(head)
    parts = lines[0].split(" ")
    if len(parts) != 3:
        return None
    method, target, version = parts
    if not _TOKEN_RE.fullmatch(method) or not target:
        return None
    if not _VERSION_RE.fullmatch(version):
        return None

    headers: list[tuple[str, str]] = []
    for line in lines[1:]:
        if line[:1] in (" ", "\t"):
            # obs-fold: another value of the previous header
            if not headers:
                return None
            headers.append((headers[-1][0], line.strip(" \t")))
            continue
        name, sep, value = line.partition(":")
        if not sep or not _TOKEN_RE.fullmatch(name):
            return None
        headers.append((name, value.strip(" \t")))

    body = data[end.end() :]
    content_length = _find_header(headers, "content-length")
    if content_length is not None:
        if not content_length.isdigit():
            return None
        length = int(content_length)
        if len(body) < length:
            return None
        body = body[:length]

    return RawRequest(method, target, tuple(headers), body)


def _find_header(headers: list[tuple[str, str]], name: str) -> str | None:
    """Return the first value of a header (case-insensitive), or None."""
    for header_name, value in headers:
        if header_name.lower() == name:
            return value
    return None


# ---------------------------------------------------------------------------
# URI encoding (AWS-specific RFC 3986 subset)
# ---------------------------------------------------------------------------


def uri_encode(value: str | bytes, *, encode_slash: bool = True) -> str:
    """URI-encode a value using AWS's rules.

    - Unreserved characters are not encoded: A-Z, a-z, 0-9, -, _, ., ~
    - Every other byte becomes %XX (uppercase hex)
    - Forward slashes (/) are optionally preserved

    Args:
        value: String to encode (as UTF-8), or raw bytes.
        encode_slash: If True, encode '/'; if False, preserve '/'.

    Returns:
        URI-encoded string.
    """
    data = value.encode("utf-8") if isinstance(value, str) else value
    result: list[str] = []
    for byte in data:
        if byte in _AWS_UNRESERVED:
            result.append(chr(byte))
        elif byte == 0x2F and not encode_slash:
            result.append("/")
        else:
            result.append(f"%{byte:02X}")
    return "".join(result)


def _remove_dot_segments(path: bytes) -> bytes:
    """Resolve ``.`` and ``..`` segments and collapse empty segments.

    A trailing slash (or a trailing dot segment) is kept as a trailing
    slash.  ``..`` never climbs above the root.
    """
    parts = path.split(b"/")
    last = len(parts) - 1
    output: list[bytes] = [b""]
    for index, part in enumerate(parts):
        if part == b".":
            continue
        if part == b"..":
            if len(output) > 1:
                output.pop()
            continue
        if part == b"" and index != last:
            continue
        output.append(part)
    if parts[-1] in (b".", b".."):
        output.append(b"")
    return b"/".join(output) or b"/"


# ---------------------------------------------------------------------------
# Canonical request components
# ---------------------------------------------------------------------------


def canonical_uri(path: str, *, normalize: bool = True) -> str:
    """Build the canonical URI from a request path.

    Existing percent-encoding is decoded to raw bytes first so that every
    path is encoded exactly once, whatever bytes the escapes stand for.

    Args:
        path: Request path, possibly already percent-encoded.
        normalize: If True, resolve dot segments and collapse repeated
            slashes.  S3 requests must pass False.

    Returns:
        URI-encoded canonical path.
    """
    path = path.split("?", 1)[0]
    if not path:
        return "/"

    decoded = urllib.parse.unquote_to_bytes(path)
    if normalize:
        decoded = _remove_dot_segments(decoded)
    elif not decoded.startswith(b"/"):
        decoded = b"/" + decoded
    return uri_encode(decoded, encode_slash=False)


def canonical_query_string(query: str) -> str:
    """Build the canonical query string.

    Each ``&``-separated parameter is split at its first ``=`` (a missing
    ``=`` means an empty value).  ``+`` is a literal plus sign, not a
    space.

    Args:
        query: Raw query string (without leading ?).

    Returns:
        Encoded parameters sorted by name, then by value.
    """
    if not query:
        return ""

    encoded: list[tuple[str, str]] = []
    for parameter in query.split("&"):
        if not parameter:
            continue
        name, _, value = parameter.partition("=")
        encoded.append(
            (
                uri_encode(urllib.parse.unquote_to_bytes(name)),
                uri_encode(urllib.parse.unquote_to_bytes(value)),
            )
        )
    encoded.sort()

    return "&".join(f"{name}={value}" for name, value in encoded)


def canonicalize_spaces(value: str) -> str:
    """Trim a header value and collapse runs of spaces into one."""
    return _MULTIPLE_SPACES_RE.sub(" ", value.strip(" \t"))


def canonical_headers(
    headers: tuple[tuple[str, str], ...] | list[tuple[str, str]],
) -> tuple[str, str]:
    """Build the canonical header block and the signed header list.

    Repeated headers are merged into one line with their values joined by
    commas, in the order they were given.

    Args:
        headers: Header (name, value) pairs.

    Returns:
        Tuple of (canonical header block, semicolon-joined names).  Every
        line of the block, including the last, ends with a newline.
    """
    grouped: dict[str, list[str]] = {}
    for name, value in headers:
        grouped.setdefault(name.lower(), []).append(canonicalize_spaces(value))

    names = sorted(grouped)
    block = "".join(f"{name}:{','.join(grouped[name])}\n" for name in names)
    return block, ";".join(names)


def hash_payload(body: bytes | str) -> str:
    """Hex-encoded SHA-256 of a request body."""
    if isinstance(body, str):
        body = body.encode("utf-8")
    return hashlib.sha256(body).hexdigest()


# ---------------------------------------------------------------------------
# Canonical request
# ---------------------------------------------------------------------------


def canonical_request(
    request: RawRequest, *, normalize_path: bool = True
) -> str:
    """Build the canonical request string for a parsed request.

    Args:
        request: The request to canonicalize.
        normalize_path: Passed to :func:`canonical_uri`.

    Returns:
        Canonical request string.
    """
    target = request.target
    if "://" in target:
        split = urllib.parse.urlsplit(target)
        path, query = split.path, split.query
    else:
        path, _, query = target.partition("?")

    header_block, signed_headers = canonical_headers(request.headers)

    return "\n".join(
        [
            request.method,
            canonical_uri(path, normalize=normalize_path),
            canonical_query_string(query),
            header_block,
            signed_headers,
            hash_payload(request.body),
        ]
    )


def build_canonical_request(
    raw_request: str | bytes, *, normalize_path: bool = True
) -> str:
    """Build the canonical request for a raw HTTP request message.

    Args:
        raw_request: Complete request message (request line, headers,
            empty line, body).
        normalize_path: Passed to :func:`canonical_uri`.

    Returns:
        Canonical request string, or an empty string if the message
        cannot be parsed.  An empty result must abort the request.
    """
    request = parse_raw_request(raw_request)
    if request is None:
        return ""
    return canonical_request(request, normalize_path=normalize_path)
