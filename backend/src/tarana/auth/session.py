"""Session verification for FastAPI.

Sessions are issued by the external identity provider as HS256 JWTs signed
with a shared secret. The ``sub`` claim is the user ID, which is also the
profile ID.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from tarana.errors import UnauthorizedError
from tarana.logging_config import get_logger
from tarana.settings import settings

logger = get_logger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """The authenticated caller."""

    user_id: str
    email: str | None = None


class SessionVerifier:
    """Decodes and checks session tokens."""

    def __init__(self, secret_key: str | None = None, algorithm: str | None = None):
        self.secret_key = secret_key or settings.session_secret_key
        self.algorithm = algorithm or settings.session_algorithm

    def create_token(
        self,
        user_id: str,
        email: str | None = None,
        expires_delta: timedelta | None = None,
    ) -> str:
        """Issue a session token.

        Production tokens come from the identity provider; this is for
        local development and tests.
        """
        now = datetime.now(timezone.utc)
        payload: dict[str, Any] = {
            "sub": user_id,
            "iat": now,
            "exp": now + (expires_delta or timedelta(hours=2)),
        }
        if email:
            payload["email"] = email
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> Principal | None:
        """Verify a token.

        Args:
            token: JWT token string

        Returns:
            Principal or None if invalid
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            logger.debug("token_verification_failed", error=str(e))
            return None

        user_id = payload.get("sub")
        if not user_id:
            return None
        return Principal(user_id=str(user_id), email=payload.get("email"))


# Verifier instance
session_verifier = SessionVerifier()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Principal | None:
    """Get the authenticated principal, if any.

    Args:
        credentials: Bearer token

    Returns:
        Principal or None if not authenticated
    """
    if not credentials:
        return None

    return session_verifier.verify(credentials.credentials)


def require_auth(user: Principal | None = Depends(get_current_user)) -> Principal:
    """Require authentication - raises 401 if not authenticated.

    Raises:
        UnauthorizedError: If there is no valid session
    """
    if not user:
        raise UnauthorizedError()
    return user
