"""Concrete :class:`~fftt.auth.interfaces.SessionStorage` implementations.

* :class:`MemorySessionStorage`: a dict living as long as the process.
  :data:`PROCESS_STORAGE` is the shared instance used when no storage is
  injected, so every client in the process sees the same session.
* :class:`FileSessionStorage`: a JSON file under ``~/.config/fftt/``,
  used by the CLI so that consecutive invocations keep one session.
"""

import json
import logging
from pathlib import Path

from fftt.auth.interfaces import SessionStorage

logger = logging.getLogger(__name__)

_CONFIG_DIR = Path.home() / ".config" / "fftt"
_SESSION_FILE = _CONFIG_DIR / "session.json"


class MemorySessionStorage(SessionStorage):
    """In-process key-value store."""

    def __init__(self):
        self._values: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def clear(self) -> None:
        """Forget every stored value."""
        self._values.clear()


PROCESS_STORAGE = MemorySessionStorage()


class FileSessionStorage(SessionStorage):
    """JSON-file-backed key-value store.

    The file is created on first write with permissions restricted to the
    owner (0o600).  An unreadable or corrupt file behaves as empty.

    Args:
        path: Location of the JSON file.  Defaults to
            ``~/.config/fftt/session.json``.
    """

    def __init__(self, path: Path | None = None):
        self._path = path or _SESSION_FILE

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            values = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            values = None
        if not isinstance(values, dict):
            logger.warning("Ignoring unreadable session file %s", self._path)
            return {}
        return values

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        values = self._load()
        values[key] = value
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(values, indent=2), encoding="utf-8")
        self._path.chmod(0o600)

    def clear(self) -> bool:
        """Remove the session file.

        Returns:
            ``True`` if the file was deleted, ``False`` if it did not exist.
        """
        if self._path.exists():
            self._path.unlink()
            return True
        return False
