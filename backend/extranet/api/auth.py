"""Session dependency: the merchant's bearer token, forwarded to the catalog service."""

import hashlib
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status


@dataclass(frozen=True)
class SessionContext:
    """Merchant session as carried by the request.

    The token is opaque here; the catalog service validates it on every call
    and answers 401/403 once it has expired.
    """

    token: str | None

    @property
    def has_session(self) -> bool:
        return bool(self.token)

    @property
    def session_id(self) -> str | None:
        """Stable digest of the token, safe to use in keys and logs."""
        if not self.token:
            return None
        return hashlib.sha256(self.token.encode()).hexdigest()[:16]


async def get_session_context(
    authorization: Annotated[str | None, Header()] = None,
) -> SessionContext:
    """Extract the session token from the authorization header.

    A request without the header has no session; wizard steps answer it with
    a redirect to the login page.

    Args:
        authorization: Authorization header (e.g., "Bearer <token>")

    Returns:
        SessionContext with the bearer token, or without one

    Raises:
        HTTPException: If the header is present but not a bearer token
    """
    if not authorization:
        return SessionContext(token=None)

    if not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = authorization[7:].strip()
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Empty bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return SessionContext(token=token)


async def require_session(
    session: Annotated[SessionContext, Depends(get_session_context)],
) -> SessionContext:
    """Session dependency for endpoints that cannot redirect (reference data).

    Raises:
        HTTPException: If the request carries no session
    """
    if not session.has_session:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing session",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session
