"""Configuration management for registry-inspect."""

import os
from typing import Mapping, Optional

from .core.types import Credentials

DEFAULT_TIMEOUT = 30
DEFAULT_LOG_LEVEL = "WARNING"


class Settings:
    """Settings read from the environment.

    ``REGISTRY_USERNAME`` and ``REGISTRY_PASSWORD`` are the credential
    source used when none are passed explicitly.
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        environ = os.environ if environ is None else environ

        self.username = environ.get("REGISTRY_USERNAME") or None
        self.password = environ.get("REGISTRY_PASSWORD") or None
        self.log_level = environ.get("REGISTRY_INSPECT_LOG_LEVEL", DEFAULT_LOG_LEVEL)
        self.timeout = self._parse_timeout(environ.get("REGISTRY_TIMEOUT"))

    @staticmethod
    def _parse_timeout(value: Optional[str]) -> int:
        if not value:
            return DEFAULT_TIMEOUT
        try:
            timeout = int(value)
        except ValueError as e:
            raise ValueError(f"REGISTRY_TIMEOUT must be an integer: {value!r}") from e
        if timeout <= 0:
            raise ValueError(f"REGISTRY_TIMEOUT must be positive: {value!r}")
        return timeout

    def credentials(
        self, username: Optional[str] = None, password: Optional[str] = None
    ) -> Optional[Credentials]:
        """Resolve credentials, explicit values taking precedence.

        Returns:
            Credentials, or None for anonymous access

        Raises:
            ValueError: If only one of username and password is available
        """
        username = username or self.username
        password = password or self.password

        if username is None and password is None:
            return None
        if not username or not password:
            raise ValueError("Both a registry username and password are required")
        return Credentials(username=username, password=password)
