"""Bearer credential persistence.

The token is the only durable piece of client state. The session itself is
always rebuilt from a server round trip.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class CredentialStore(Protocol):
    """Where the bearer token lives between runs."""

    def load(self) -> str | None:
        """Return the stored token, or None for an anonymous visitor."""
        ...

    def save(self, token: str) -> None:
        """Persist a token, replacing any previous one."""
        ...

    def clear(self) -> None:
        """Erase the stored token. A no-op when nothing is stored."""
        ...


class MemoryCredentialStore:
    """Process-local store, for tests and throwaway sessions."""

    def __init__(self, token: str | None = None) -> None:
        self._token = token

    def load(self) -> str | None:
        return self._token

    def save(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None


class FileCredentialStore:
    """Keep the token in a single file readable only by the owner.

    Absence of the file is the normal anonymous state.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> str | None:
        try:
            token = self._path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError:
            logger.exception("Could not read credential file %s", self._path)
            return None
        return token or None

    def save(self, token: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(token)
        tmp_path.replace(self._path)
        logger.debug("Credential saved to %s", self._path)

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)
        logger.debug("Credential cleared at %s", self._path)
