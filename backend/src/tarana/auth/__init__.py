"""Session authentication for the Tarana API."""

from tarana.auth.session import Principal, SessionVerifier, get_current_user, require_auth, session_verifier

__all__ = [
    "Principal",
    "SessionVerifier",
    "get_current_user",
    "require_auth",
    "session_verifier",
]
