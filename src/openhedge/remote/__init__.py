"""Remote collaborators: the query store and its auth service."""

from .auth import AuthClient, AuthError, Session, SessionStore, wait_for_oauth_code
from .client import Query, RemoteError, RestClient

__all__ = [
    "AuthClient",
    "AuthError",
    "Query",
    "RemoteError",
    "RestClient",
    "Session",
    "SessionStore",
    "wait_for_oauth_code",
]
