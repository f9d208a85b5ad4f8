"""Isnad auth server — FastAPI endpoints in front of the session store.

Can be run standalone (``harbor-isnad serve`` or
``python -m harbor_isnad.server``) or mounted inside a relay's own app.

Endpoints:

    POST /auth/challenge  issue a challenge for a peer
    POST /auth/verify     submit answers, receive a token
    POST /auth/check      is a token still valid?
    GET  /auth/whoami     echo the peer behind X-Isnad-Token
    GET  /auth/stats      pending challenge / live token counts

Every :class:`~harbor_isnad.errors.AuthError` is rendered as
``{"error": message}`` with the error's status code.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic.alias_generators import to_camel

from harbor_isnad.config import IsnadSettings
from harbor_isnad.errors import AuthError
from harbor_isnad.oracle import ChallengeOracle
from harbor_isnad.protocol import (
    ChallengeEnvelope,
    ChallengeRequest,
    CheckTokenRequest,
    ErrorBody,
    TokenStatus,
    VerifyRequest,
)
from harbor_isnad.store import SessionStore
from harbor_isnad.validator import TokenValidator, require_verified_peer

logger = logging.getLogger(__name__)


# ── Store singleton ──────────────────────────────────────────────────────────

_store: SessionStore | None = None


def get_store() -> SessionStore:
    global _store
    if _store is None:
        _store = SessionStore.from_settings(IsnadSettings.from_env())
    return _store


def init_store(
    store: SessionStore | None = None,
    settings: IsnadSettings | None = None,
    oracle: ChallengeOracle | None = None,
) -> SessionStore:
    """Replace the process-wide store, from an instance or from settings."""
    global _store
    if store is None:
        store = SessionStore.from_settings(settings or IsnadSettings.from_env(), oracle=oracle)
    if _store is not None and _store is not store:
        _store.stop_sweeper()
    _store = store
    return _store


def get_validator() -> TokenValidator:
    return TokenValidator(get_store())


# ── Routes ───────────────────────────────────────────────────────────────────

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/challenge")
def request_challenge(req: ChallengeRequest) -> dict:
    challenge = get_store().request_challenge(req.peer_id)
    return ChallengeEnvelope(challenge=challenge).to_wire()


@router.post("/verify")
def verify_challenge(req: VerifyRequest) -> dict:
    return get_store().verify_response(req.response, req.peer_id).to_wire()


@router.post("/check")
def check_token(req: CheckTokenRequest) -> dict:
    return get_validator().check_token(req.token).to_wire()


@router.get("/whoami")
def whoami(status: TokenStatus = Depends(require_verified_peer(get_validator))) -> dict:
    return {"peerId": status.peer_id, "remainingSeconds": status.remaining_seconds}


@router.get("/stats")
def auth_stats() -> dict:
    return {to_camel(k): v for k, v in get_store().stats().items()}


# ── App ──────────────────────────────────────────────────────────────────────


@asynccontextmanager
async def _lifespan(app: FastAPI):
    store = get_store()
    store.start_sweeper()
    logger.info(
        "Isnad auth ready (challenge TTL %ss, token TTL %ss, sweep every %ss)",
        store.challenge_ttl, store.token_ttl, store.sweep_interval,
    )
    try:
        yield
    finally:
        store.stop_sweeper()


async def _auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    return JSONResponse(ErrorBody(error=exc.message).to_wire(), status_code=exc.status_code)


def create_app() -> FastAPI:
    app = FastAPI(title="Isnad Auth", version="0.1.0", lifespan=_lifespan)
    app.include_router(router)
    app.add_exception_handler(AuthError, _auth_error_handler)
    return app


auth_app = create_app()


# ── Standalone runner ────────────────────────────────────────────────────────


def run_auth_server(settings: IsnadSettings | None = None) -> None:
    """Start the auth server (blocking)."""
    import uvicorn

    settings = settings or IsnadSettings.from_env()
    init_store(settings=settings)
    uvicorn.run(auth_app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run_auth_server()
