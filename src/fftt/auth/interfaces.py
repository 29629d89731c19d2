"""Abstract interfaces for the session layer.

The client never talks to a concrete store.  Anything able to get and set
a string by key (process memory, a file, a browser-like session, a shared
cache) can back the session identifier.
"""

from abc import ABC, abstractmethod


class SessionStorage(ABC):
    """Abstract key-value store for session-scoped strings.

    Example usage::

        storage = FileSessionStorage()                 # concrete store
        caller = FFTTApiCaller(password, app_id,
                               storage=storage)        # injected into client
    """

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the value stored under *key*.

        This method must not raise; it should return ``None`` when the
        key is absent or the store cannot be read.

        Args:
            key: The storage key.

        Returns:
            The stored string, or ``None``.
        """

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store *value* under *key*, replacing any previous value.

        Args:
            key: The storage key.
            value: The string to store.
        """
