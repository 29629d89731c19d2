"""Timestamp signing for FFTT requests.

Every call to the federation backend carries a ``tm`` timestamp and a
``tmc`` signature.  The backend recomputes the signature from ``tm`` and
the shared password and rejects the request when they disagree.

The scheme:

* ``tm`` : local wall-clock time formatted as ``YYYYMMDDHHmmssSSS``.
* ``tmc``: ``HMAC-SHA1(key=hex(MD5(password)), msg=tm)`` as hex text.
"""

import hashlib
import hmac
from datetime import datetime


def timestamp_string(moment: datetime) -> str:
    """Format *moment* as the 17-digit ``tm`` value.

    Args:
        moment: A naive (local) datetime.

    Returns:
        ``YYYYMMDDHHmmssSSS`` with every field zero-padded.
    """
    return (
        f"{moment.year:04d}{moment.month:02d}{moment.day:02d}"
        f"{moment.hour:02d}{moment.minute:02d}{moment.second:02d}"
        f"{moment.microsecond // 1000:03d}"
    )


def sign_timestamp(timestamp: str, password: str) -> str:
    """Return the ``tmc`` signature of *timestamp*.

    Args:
        timestamp: The ``tm`` value being sent.
        password: The password issued by the federation.

    Returns:
        The HMAC-SHA1 hex digest, keyed by the MD5 hex digest of
        *password*.
    """
    key = hashlib.md5(password.encode("utf-8")).hexdigest()
    return hmac.new(
        key.encode("ascii"), timestamp.encode("ascii"), hashlib.sha1
    ).hexdigest()


class RequestSigner:
    """Produces ``(tm, tmc)`` pairs for one federation password."""

    def __init__(self, password: str):
        self._password = password

    def sign(self, moment: datetime | None = None) -> tuple[str, str]:
        """Return the timestamp and its signature.

        Args:
            moment: The instant to sign.  Defaults to the current local
                time.

        Returns:
            A ``(timestamp, signature)`` tuple.
        """
        timestamp = timestamp_string(moment or datetime.now())
        return timestamp, sign_timestamp(timestamp, self._password)
