"""Persistent storage for FFTT application credentials.

The federation issues every application an identifier (``id``) and a
password.  The CLI keeps them in ``~/.config/fftt/credentials.json`` with
permissions restricted to the owner (0o600).  The library itself never
reads this file: :class:`~fftt.client.FFTTApiCaller` only takes its
credentials as constructor arguments.
"""

import json
import os
from pathlib import Path

_CONFIG_DIR = Path.home() / ".config" / "fftt"
_CREDENTIALS_FILE = _CONFIG_DIR / "credentials.json"

ENV_APP_ID = "FFTT_APP_ID"
ENV_PASSWORD = "FFTT_PASSWORD"


def save(app_id: str, password: str) -> None:
    """Write the federation-issued pair to ``credentials.json``.

    Args:
        app_id: Sent as ``id`` on every request.
        password: Only used to derive the ``tmc`` signature key; never
            sent over the wire.
    """
    _CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    _CREDENTIALS_FILE.write_text(
        json.dumps({"app_id": app_id, "password": password}, indent=2),
        encoding="utf-8",
    )
    _CREDENTIALS_FILE.chmod(0o600)


def load() -> dict[str, str]:
    """Load credentials from the config file.

    Returns:
        The stored ``app_id`` and ``password``.  Empty when the file is
        missing, unreadable, or does not hold a JSON object.
    """
    if not _CREDENTIALS_FILE.exists():
        return {}
    try:
        stored = json.loads(_CREDENTIALS_FILE.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        return {}
    return stored if isinstance(stored, dict) else {}


def clear() -> bool:
    """Forget the stored pair; ``False`` when nothing was stored."""
    try:
        _CREDENTIALS_FILE.unlink()
    except FileNotFoundError:
        return False
    return True


def credentials_path() -> Path:
    """Location of ``credentials.json``, shown by ``fftt auth`` commands."""
    return _CREDENTIALS_FILE


def resolve(
    app_id: str | None = None, password: str | None = None
) -> tuple[str | None, str | None, str]:
    """Resolve credentials from all available sources.

    Resolution order (first complete pair wins):

    1. Explicit arguments.
    2. ``FFTT_APP_ID`` and ``FFTT_PASSWORD`` environment variables.
    3. The credentials file.

    Args:
        app_id: Application identifier given on the command line.
        password: Password given on the command line.

    Returns:
        An ``(app_id, password, source)`` tuple.  The first two elements
        are ``None`` when no source provides a complete pair; ``source``
        is a human-readable description of where the pair came from.
    """
    if app_id and password:
        return app_id, password, "command-line options"

    env_id = os.getenv(ENV_APP_ID)
    env_password = os.getenv(ENV_PASSWORD)
    if env_id and env_password:
        return env_id, env_password, "environment variables"

    stored = load()
    if stored.get("app_id") and stored.get("password"):
        return stored["app_id"], stored["password"], str(_CREDENTIALS_FILE)

    return None, None, "none"
