# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Shared pytest fixtures."""

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from awssign.logging import SecretFilter


_AWS_ENV_VARS = (
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "AWS_SESSION_TOKEN",
    "AWS_DEFAULT_REGION",
    "AWS_PROFILE",
    "AWS_SHARED_CREDENTIALS_FILE",
    "AWS_CONFIG_FILE",
)


@pytest.fixture(autouse=True)
def isolated_aws_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Iterator[Path]:
    """Hide the developer's AWS settings from every test.

    Returns:
        The temporary home directory.
    """
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for name in _AWS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield home
    SecretFilter.clear_secrets()


@pytest.fixture
def restore_root_logger() -> Iterator[logging.Logger]:
    """Restore root logger handlers and level after the test."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield root
    root.handlers = handlers
    root.setLevel(level)
