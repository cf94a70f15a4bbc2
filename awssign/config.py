# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""AWS configuration and shared-credentials loading.

Reads the two files used by the AWS tooling:

    ``~/.aws/credentials``  (override with ``AWS_SHARED_CREDENTIALS_FILE``)
    ``~/.aws/config``       (override with ``AWS_CONFIG_FILE``)

Both use an INI-like format where a key with an empty value opens a
nested section made of the following, more-indented lines::

    [default]
    region = us-west-1
    s3 =
      max_concurrent_requests = 20

Values are resolved with precedence environment > credentials file >
config file.  Environment lookups go through an injected callable so
callers (and tests) never have to touch ``os.environ``.
"""

import logging
import os
import re
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from awssign.request import Credentials


logger = logging.getLogger(__name__)

#: Environment lookup strategy: returns None (or empty) for unset vars.
EnvLookup = Callable[[str], str | None]

_LINE_SPLIT_RE = re.compile(r"[\r\n]+")


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""


@dataclass
class AwsConfig:
    """Resolved AWS settings for one profile.

    Attributes:
        access_key_id: AWS access key ID.
        secret_access_key: AWS secret access key.
        session_token: Session token for temporary credentials.
        region: Default region.
    """

    access_key_id: str = ""
    secret_access_key: str = ""
    session_token: str = ""
    region: str = ""

    @property
    def credentials(self) -> Credentials:
        """Credentials for request signing."""
        return Credentials(
            self.access_key_id, self.secret_access_key, self.session_token
        )


# ---------------------------------------------------------------------------
# File parsing
# ---------------------------------------------------------------------------


def parse_config(text: str) -> dict[str, Any]:
    """Parse AWS config/credentials file contents.

    Lines outside any ``[section]`` are ignored, as are blank lines,
    comment lines (``#`` or ``;``) and lines without ``=``.

    Args:
        text: File contents.  CR, LF and CRLF all end a line.

    Returns:
        Mapping of section name to its (possibly nested) key/value pairs.
    """
    config: dict[str, Any] = {}
    context: list[tuple[int, dict[str, Any]]] = []
    last_section: dict[str, Any] | None = None

    for line in _LINE_SPLIT_RE.split(text):
        if not line:
            continue
        if line[0] == "[":
            if line[-1] == "]":
                section: dict[str, Any] = {}
                config[line[1:-1].strip()] = section
                context = [(0, section)]
                last_section = None
            continue

        stripped = line.lstrip(" ")
        if not stripped or stripped[0] in "#;":
            continue
        indentation = len(line) - len(stripped)

        while context and indentation < context[-1][0]:
            context.pop()
        if not context:
            continue
        if indentation > context[-1][0]:
            if last_section is None:
                continue
            context.append((indentation, last_section))
            last_section = None

        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        value = value.strip()
        if value:
            context[-1][1][key] = value
            last_section = None
        else:
            last_section = {}
            context[-1][1][key] = last_section

    return config


def load_config_file(path: Path) -> dict[str, Any] | None:
    """Parse a config file.

    Args:
        path: File to read.

    Returns:
        Parsed contents, or None if the file cannot be read.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.debug("Cannot read %s: %s", path, e)
        return None
    return parse_config(text)


# ---------------------------------------------------------------------------
# Default resolution
# ---------------------------------------------------------------------------


def _section(path: Path, name: str) -> dict[str, Any]:
    parsed = load_config_file(path) or {}
    section = parsed.get(name, {})
    return section if isinstance(section, dict) else {}


def _scalar(section: dict[str, Any], key: str) -> str:
    value = section.get(key, "")
    return value if isinstance(value, str) else ""


def get_defaults(
    *,
    home: Path | None = None,
    profile: str | None = None,
    getenv: EnvLookup = os.environ.get,
) -> AwsConfig:
    """Resolve AWS settings from the environment and config files.

    Args:
        home: Home directory holding ``.aws/``.  Defaults to the user's.
        profile: Profile name.  Defaults to ``AWS_PROFILE``, then
            ``default``.
        getenv: Environment lookup.

    Returns:
        Resolved settings.  Missing values are empty strings.
    """

    def env(name: str) -> str:
        return getenv(name) or ""

    if home is None:
        home = Path.home()

    config = AwsConfig(
        access_key_id=env("AWS_ACCESS_KEY_ID"),
        secret_access_key=env("AWS_SECRET_ACCESS_KEY"),
        session_token=env("AWS_SESSION_TOKEN"),
        region=env("AWS_DEFAULT_REGION"),
    )

    profile = profile or env("AWS_PROFILE") or "default"
    config_section = "default" if profile == "default" else f"profile {profile}"

    credentials_path = Path(
        env("AWS_SHARED_CREDENTIALS_FILE") or home / ".aws" / "credentials"
    )
    config_path = Path(env("AWS_CONFIG_FILE") or home / ".aws" / "config")

    profile_config = _section(config_path, config_section)

    for section in (_section(credentials_path, profile), profile_config):
        config.access_key_id = config.access_key_id or _scalar(
            section, "aws_access_key_id"
        )
        config.secret_access_key = config.secret_access_key or _scalar(
            section, "aws_secret_access_key"
        )
        config.session_token = config.session_token or _scalar(
            section, "aws_session_token"
        )
    # Region comes from the config file only
    config.region = config.region or _scalar(profile_config, "region")

    logger.debug(
        "Resolved profile %s (region %s)", profile, config.region or "unset"
    )
    return config


def require_credentials(config: AwsConfig) -> Credentials:
    """Return the signing credentials, failing if any part is missing.

    Raises:
        ConfigError: If the access key ID or secret is not set.
    """
    if not config.access_key_id:
        raise ConfigError("No AWS access key ID configured")
    if not config.secret_access_key:
        raise ConfigError("No AWS secret access key configured")
    return config.credentials
