"""Session state and credential persistence.

:class:`SessionManager` tracks the access/refresh token pair, the decoded
session profile and the expiry timer; the storage classes persist the
token pair between runs.
"""

from pleasure_client.auth.session import SessionManager, decode_profile
from pleasure_client.auth.storage import CredentialStorage, FileStorage, MemoryStorage

__all__ = [
    "CredentialStorage",
    "FileStorage",
    "MemoryStorage",
    "SessionManager",
    "decode_profile",
]
