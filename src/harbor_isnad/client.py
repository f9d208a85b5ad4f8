"""Isnad client — the agent side of the verification handshake.

Two round trips, no retries:

    POST {auth_url}/auth/challenge {peerId}            → challenge
    solve locally
    POST {auth_url}/auth/verify {peerId, response}     → token

Any failure ends the attempt; call :meth:`AuthOrchestrator.authenticate`
again to start over with a fresh challenge.

The handshake only speaks :class:`AuthTransport`, so the HTTP library is
swappable.  :class:`HttpxTransport` is the default and accepts any
``httpx.Client`` (including FastAPI's ``TestClient``).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from harbor_isnad.errors import (
    ChallengeRequestFailed,
    DecodeError,
    NetworkError,
    VerificationRequestFailed,
)
from harbor_isnad.protocol import AuthToken, ChallengeEnvelope, ChallengeRequest, VerifyRequest
from harbor_isnad.solver import solve_challenge

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransportResponse:
    status_code: int
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class AuthTransport(Protocol):
    def post_json(self, url: str, payload: dict[str, Any]) -> TransportResponse: ...


class HttpxTransport:
    """Blocking JSON-over-HTTP transport backed by httpx."""

    def __init__(self, client: httpx.Client | None = None, timeout: float = 10.0) -> None:
        self._client = client or httpx.Client(timeout=timeout)
        self._owns_client = client is None

    def post_json(self, url: str, payload: dict[str, Any]) -> TransportResponse:
        try:
            resp = self._client.post(url, json=payload)
        except httpx.HTTPError as e:
            raise NetworkError(f"POST {url} failed: {e}") from e
        return TransportResponse(status_code=resp.status_code, text=resp.text)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "HttpxTransport":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def _decode(resp: TransportResponse, model, what: str):
    try:
        return model.model_validate(json.loads(resp.text))
    except (json.JSONDecodeError, ValidationError) as e:
        raise DecodeError(f"Failed to parse {what}: {e}") from e


class AuthOrchestrator:
    """Runs the handshake over *transport*.

    With no transport an :class:`HttpxTransport` is created and owned by the
    orchestrator; release it with :meth:`close` or a ``with`` block.  A
    transport passed in is left for the caller to close.
    """

    def __init__(self, transport: AuthTransport | None = None, timeout: float = 10.0) -> None:
        self._owns_transport = transport is None
        self.transport = transport or HttpxTransport(timeout=timeout)

    def close(self) -> None:
        if self._owns_transport:
            self.transport.close()

    def __enter__(self) -> "AuthOrchestrator":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def authenticate(self, auth_url: str, peer_id: str) -> AuthToken:
        """Run the full handshake against *auth_url* and return the issued token."""
        base = auth_url.rstrip("/")

        logger.info("Requesting CAPTCHA challenge from %s", base)
        resp = self.transport.post_json(
            f"{base}/auth/challenge", ChallengeRequest(peer_id=peer_id).to_wire()
        )
        if not resp.ok:
            raise ChallengeRequestFailed(resp.status_code, resp.text)
        challenge = _decode(resp, ChallengeEnvelope, "challenge").challenge
        logger.info(
            "Received challenge %s with %d tasks", challenge.challenge_id, len(challenge.tasks)
        )

        response = solve_challenge(challenge)
        logger.info("Challenge solved, submitting verification")

        resp = self.transport.post_json(
            f"{base}/auth/verify",
            VerifyRequest(peer_id=peer_id, response=response).to_wire(),
        )
        if not resp.ok:
            raise VerificationRequestFailed(resp.status_code, resp.text)
        token = _decode(resp, AuthToken, "verification result")

        logger.info("Isnad CAPTCHA verified! Token: %s", token.summary())
        return token


def authenticate_with_relay(auth_url: str, peer_id: str, timeout: float = 10.0) -> AuthToken:
    """One-shot handshake with a throwaway httpx client."""
    with HttpxTransport(timeout=timeout) as transport:
        return AuthOrchestrator(transport).authenticate(auth_url, peer_id)
