"""Authentication layer: request signing and session storage."""

from fftt.auth.interfaces import SessionStorage
from fftt.auth.signer import RequestSigner, sign_timestamp, timestamp_string
from fftt.auth.storage import FileSessionStorage, MemorySessionStorage

__all__ = [
    "FileSessionStorage",
    "MemorySessionStorage",
    "RequestSigner",
    "SessionStorage",
    "sign_timestamp",
    "timestamp_string",
]
