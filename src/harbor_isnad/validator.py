"""Token validation for relay admission.

The relay asks one of two questions before granting a reservation:
"does this peer hold any live token?" or "is this token live, and whose
is it?".  :class:`TokenValidator` answers both from the session store and
keeps no state of its own.
"""

from __future__ import annotations

from typing import Callable

from fastapi import Header, HTTPException, status

from harbor_isnad.protocol import TokenStatus
from harbor_isnad.store import SessionStore

TOKEN_HEADER = "X-Isnad-Token"


class TokenValidator:
    def __init__(self, store: SessionStore) -> None:
        self.store = store

    def is_peer_verified(self, peer_id: str) -> bool:
        return self.store.is_peer_verified(peer_id)

    def check_token(self, token: str) -> TokenStatus:
        return self.store.check_token(token)

    def admit(self, peer_id: str, token: str | None = None) -> bool:
        """Admission check used before granting relay services.

        With a *token*, it must be live and bound to *peer_id*.  Without one,
        any live token held by *peer_id* will do.
        """
        if token is None:
            return self.is_peer_verified(peer_id)
        result = self.check_token(token)
        return result.valid and result.peer_id == peer_id


def require_verified_peer(get_validator: Callable[[], TokenValidator]):
    """Build a FastAPI dependency that authenticates via the ``X-Isnad-Token`` header.

    The dependency returns the live :class:`TokenStatus`; a missing or dead
    token raises 401.
    """

    def dependency(x_isnad_token: str | None = Header(None, alias=TOKEN_HEADER)) -> TokenStatus:
        if not x_isnad_token:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Missing {TOKEN_HEADER} header",
            )
        result = get_validator().check_token(x_isnad_token.strip())
        if not result.valid:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired token",
            )
        return result

    return dependency
