"""Typed access to VCONV_* environment variables.

EnvReader wraps a mapping (os.environ by default) so configuration code can
be exercised in tests with an injected dictionary.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

logger = logging.getLogger(__name__)


class EnvReader:
    """Read and convert environment variables.

    Invalid values are logged and replaced by the default rather than
    raising, so a typo in the environment never prevents startup.

    Example:
        reader = EnvReader(env={"VCONV_SERVER_PORT": "9000"})
        reader.get_int("VCONV_SERVER_PORT", 3000)  # 9000
    """

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        """Initialize the reader.

        Args:
            env: Mapping to read from. Defaults to os.environ.
        """
        self._env: Mapping[str, str] = env if env is not None else os.environ

    def get_str(self, var: str, default: str | None = None) -> str | None:
        """Return the raw value of var, or default if unset or blank."""
        value = self._env.get(var)
        if value is None or not value.strip():
            return default
        return value

    def get_int(self, var: str, default: int | None = None) -> int | None:
        """Return var parsed as an integer.

        Args:
            var: Environment variable name.
            default: Returned when unset or unparseable.

        Returns:
            Parsed integer or default.
        """
        value = self.get_str(var)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            logger.warning("Invalid integer value for %s: %s", var, value)
            return default

    def get_float(self, var: str, default: float | None = None) -> float | None:
        """Return var parsed as a float, or default if unset or unparseable."""
        value = self.get_str(var)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            logger.warning("Invalid float value for %s: %s", var, value)
            return default

    def get_bool(self, var: str, default: bool | None = None) -> bool | None:
        """Return var as a boolean.

        "true", "1", "yes" and "on" (any case) are true; any other set value
        is false.
        """
        value = self.get_str(var)
        if value is None:
            return default
        return value.strip().lower() in ("true", "1", "yes", "on")

    def get_path(self, var: str, default: Path | None = None) -> Path | None:
        """Return var as a Path with ~ expanded, or default if unset."""
        value = self.get_str(var)
        if value is None:
            return default
        return Path(value).expanduser()
