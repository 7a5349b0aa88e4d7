"""Generic value resolution for sources the vault does not own.

The host can point a value at a literal, an environment variable, a file or
the output of a shell command.  The secrets store hands every key name other
than ``secret`` to a resolver like this one.
"""

import os
import subprocess
from collections.abc import Mapping
from pathlib import Path

from azstore.constants import SOURCE_COMMAND, SOURCE_ENV, SOURCE_PATH, SOURCE_VALUE
from azstore.errors import InvalidValueSourceError, SecretResolutionError


class HostValueResolver:
    """Resolves ``value``, ``env``, ``path`` and ``command`` sources."""

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = os.environ if environ is None else environ

    def resolve(self, key_name: str, key_value: str) -> str:
        source = key_name.lower()
        if source == SOURCE_VALUE:
            return key_value
        if source == SOURCE_ENV:
            return self._environ.get(key_value, "")
        if source == SOURCE_PATH:
            try:
                return Path(key_value).read_text()
            except OSError as exc:
                raise SecretResolutionError(f"could not read file {key_value}: {exc}") from exc
        if source == SOURCE_COMMAND:
            return self._run(key_value)
        raise InvalidValueSourceError(key_name)

    @staticmethod
    def _run(command: str) -> str:
        """Run a shell command, returning stdout. Raises SecretResolutionError on failure."""
        result = subprocess.run(command, shell=True, capture_output=True, text=True)
        if result.returncode != 0:
            raise SecretResolutionError(
                f"Command failed (exit {result.returncode}):\n"
                f"  {command}\n"
                f"  stderr: {result.stderr.strip()}"
            )
        return result.stdout
