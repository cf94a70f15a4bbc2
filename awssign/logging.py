# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Logging setup that keeps AWS credentials out of log output.

Whoever loads a secret access key or session token registers it with
:meth:`SecretFilter.register_secret`.  The handler installed by
:func:`configure_logging` then replaces it with ``[REDACTED]`` wherever it
shows up, in the message or in its arguments.

Library modules only ever do::

    logger = logging.getLogger(__name__)
"""

import logging
import re
from typing import ClassVar


DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

REDACTED = "[REDACTED]"


class SecretFilter(logging.Filter):
    """Redacts registered secrets from every record it sees.

    The registry is shared by all instances.
    """

    _secrets: ClassVar[set[str]] = set()
    _pattern: ClassVar[re.Pattern[str] | None] = None

    @classmethod
    def register_secret(cls, *secrets: str) -> None:
        """Add secrets to the registry.  Empty values are skipped."""
        new = {secret for secret in secrets if secret} - cls._secrets
        if not new:
            return
        cls._secrets |= new
        # Longest first, so a secret containing another is fully redacted
        ordered = sorted(cls._secrets, key=len, reverse=True)
        cls._pattern = re.compile("|".join(map(re.escape, ordered)))

    @classmethod
    def clear_secrets(cls) -> None:
        """Empty the registry."""
        cls._secrets = set()
        cls._pattern = None

    @classmethod
    def redact(cls, text: str) -> str:
        """Return text with every registered secret replaced."""
        if cls._pattern is None:
            return text
        return cls._pattern.sub(REDACTED, text)

    def filter(self, record: logging.LogRecord) -> bool:
        if self._pattern is None:
            return True
        record.msg = self.redact(str(record.msg))
        if isinstance(record.args, tuple):
            record.args = tuple(
                self.redact(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        return True


def configure_logging(
    level: int = logging.WARNING, format_string: str = DEFAULT_FORMAT
) -> None:
    """Send log output to stderr through a :class:`SecretFilter`.

    Any handlers already on the root logger are dropped.

    Args:
        level: Root logger level.
        format_string: Record format.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(format_string))
    handler.addFilter(SecretFilter())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)
