# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Minimal Amazon S3 REST client.

Every request is signed with :func:`awssign.request.sign_request` and sent
with httpx.  Responses are parsed from XML into small dataclasses.  Non-2xx
responses do not raise: the result carries the status code and the
contents of the S3 ``<Error>`` element instead.  Transport failures
(``httpx.HTTPError``) propagate to the caller.
"""

from __future__ import annotations

import logging
import urllib.parse
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import httpx

from awssign.canonical import uri_encode
from awssign.config import AwsConfig, require_credentials
from awssign.logging import SecretFilter
from awssign.request import sign_request
from awssign.xml_tree import XmlError, as_list, xml_to_tree


logger = logging.getLogger(__name__)

SERVICE = "s3"

_DEFAULT_REGION = "us-east-1"
_TIMEOUT_SECONDS = 30


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass
class Owner:
    """Owner of a set of buckets."""

    id: str = ""
    display_name: str = ""


@dataclass
class Bucket:
    """A bucket.  ``creation_date`` is seconds since the UNIX epoch."""

    name: str = ""
    creation_date: float = 0.0


@dataclass
class S3Object:
    """An object listed in a bucket.

    Attributes:
        key: Object key.
        etag: Entity tag, including the surrounding quotes S3 returns.
        last_modified: Seconds since the UNIX epoch.
        size: Size in bytes.
    """

    key: str = ""
    etag: str = ""
    last_modified: float = 0.0
    size: int = 0


@dataclass
class ListBucketsResult:
    status_code: int = 0
    owner: Owner = field(default_factory=Owner)
    buckets: list[Bucket] = field(default_factory=list)
    error_info: dict[str, Any] = field(default_factory=dict)


@dataclass
class ListObjectsResult:
    status_code: int = 0
    objects: list[S3Object] = field(default_factory=list)
    error_info: dict[str, Any] = field(default_factory=dict)


@dataclass
class GetObjectResult:
    status_code: int = 0
    content: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)
    error_info: dict[str, Any] = field(default_factory=dict)


@dataclass
class PutObjectResult:
    status_code: int = 0
    etag: str = ""
    error_info: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def _child(value: Any, key: str) -> Any:
    """Return ``value[key]`` if value is a mapping, else None."""
    if isinstance(value, dict):
        return value.get(key)
    return None


def _text(value: Any, key: str) -> str:
    child = _child(value, key)
    return child if isinstance(child, str) else ""


def parse_timestamp(value: str) -> float:
    """Parse an ISO 8601 timestamp into seconds since the UNIX epoch.

    Returns 0.0 for values that cannot be parsed.
    """
    try:
        moment = datetime.fromisoformat(value)
    except ValueError:
        return 0.0
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.timestamp()


def _encode_key_segment(segment: str) -> str:
    """Percent-encode one ``/``-separated piece of an object key.

    S3 keys may contain ``.`` and ``..`` segments, which httpx would
    resolve away if sent literally.  Escaping the dots keeps the sent path
    equal to the signed one, since canonicalization decodes them again.
    """
    if segment in (".", ".."):
        return "%2E" * len(segment)
    return uri_encode(segment)


def _error_info(response: httpx.Response) -> dict[str, Any]:
    """Extract the ``<Error>`` element of a failed response."""
    try:
        tree = xml_to_tree(response.content)
    except XmlError:
        return {}
    error = tree.get("Error")
    return error if isinstance(error, dict) else {}


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class S3Client:
    """S3 client bound to one region and one set of credentials."""

    def __init__(
        self,
        config: AwsConfig,
        *,
        client: httpx.Client | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Resolved AWS settings.  The region defaults to
                us-east-1 when unset.
            client: HTTP client to send requests with.  A new one is
                created (and owned) when omitted.
            clock: Returns the signing time.  Defaults to the current
                UTC time.

        Raises:
            ConfigError: If credentials are missing.
        """
        self._credentials = require_credentials(config)
        self._region = config.region or _DEFAULT_REGION
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=_TIMEOUT_SECONDS)
        self._clock = clock or (lambda: datetime.now(UTC))

        SecretFilter.register_secret(
            self._credentials.secret_access_key,
            self._credentials.session_token,
        )

    @property
    def endpoint(self) -> str:
        """Base URL of the regional S3 endpoint."""
        return f"https://s3.{self._region}.amazonaws.com"

    def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> S3Client:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        *,
        query: str = "",
        body: bytes = b"",
        headers: list[tuple[str, str]] | None = None,
    ) -> httpx.Response:
        url = self.endpoint + path
        if query:
            url = f"{url}?{query}"

        signed = sign_request(
            method=method,
            url=url,
            credentials=self._credentials,
            region=self._region,
            service=SERVICE,
            headers=headers or [],
            body=body,
            timestamp=self._clock(),
            normalize_path=False,
        )
        response = self._client.request(
            method, url, headers=signed, content=body
        )
        if response.is_success:
            logger.debug("%s %s -> %d", method, url, response.status_code)
        else:
            logger.warning("%s %s -> %d", method, url, response.status_code)
        return response

    @staticmethod
    def _object_path(bucket: str, key: str = "") -> str:
        path = "/" + uri_encode(bucket)
        if key:
            path += "/" + "/".join(
                _encode_key_segment(segment) for segment in key.split("/")
            )
        return path

    def list_buckets(self) -> ListBucketsResult:
        """List the buckets owned by the caller."""
        response = self._request("GET", "/")
        result = ListBucketsResult(status_code=response.status_code)
        if not response.is_success:
            result.error_info = _error_info(response)
            return result

        listing = xml_to_tree(response.content).get("ListAllMyBucketsResult")
        owner = _child(listing, "Owner")
        result.owner = Owner(
            id=_text(owner, "ID"), display_name=_text(owner, "DisplayName")
        )
        for bucket in as_list(_child(_child(listing, "Buckets"), "Bucket")):
            result.buckets.append(
                Bucket(
                    name=_text(bucket, "Name"),
                    creation_date=parse_timestamp(
                        _text(bucket, "CreationDate")
                    ),
                )
            )
        return result

    def list_objects(self, bucket: str) -> ListObjectsResult:
        """List every object in a bucket.

        Follows continuation tokens until the listing is complete.
        """
        result = ListObjectsResult()
        params: dict[str, str] = {"list-type": "2"}
        while True:
            response = self._request(
                "GET",
                self._object_path(bucket),
                query=urllib.parse.urlencode(
                    params, quote_via=urllib.parse.quote
                ),
            )
            result.status_code = response.status_code
            if not response.is_success:
                result.error_info = _error_info(response)
                return result

            listing = xml_to_tree(response.content).get("ListBucketResult")
            for entry in as_list(_child(listing, "Contents")):
                size = _text(entry, "Size")
                result.objects.append(
                    S3Object(
                        key=_text(entry, "Key"),
                        etag=_text(entry, "ETag"),
                        last_modified=parse_timestamp(
                            _text(entry, "LastModified")
                        ),
                        size=int(size) if size.isdigit() else 0,
                    )
                )

            token = _text(listing, "NextContinuationToken")
            if _text(listing, "IsTruncated") != "true" or not token:
                return result
            params["continuation-token"] = token

    def get_object(self, bucket: str, key: str) -> GetObjectResult:
        """Download an object."""
        response = self._request("GET", self._object_path(bucket, key))
        result = GetObjectResult(
            status_code=response.status_code,
            headers=dict(response.headers),
        )
        if not response.is_success:
            result.error_info = _error_info(response)
            return result
        result.content = response.content
        return result

    def put_object(
        self,
        bucket: str,
        key: str,
        content: bytes,
        content_type: str | None = None,
    ) -> PutObjectResult:
        """Upload an object."""
        headers: list[tuple[str, str]] = []
        if content_type:
            headers.append(("Content-Type", content_type))
        response = self._request(
            "PUT",
            self._object_path(bucket, key),
            body=content,
            headers=headers,
        )
        result = PutObjectResult(status_code=response.status_code)
        if not response.is_success:
            result.error_info = _error_info(response)
            return result
        result.etag = response.headers.get("ETag", "")
        return result
