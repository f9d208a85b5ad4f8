"""Isnad error taxonomy.

Server-side failures are :class:`AuthError` subclasses carrying the HTTP
status they map to.  Client-side handshake failures are
:class:`HandshakeError` subclasses carrying the status and raw body the
relay returned, so an operator can tell what went wrong.

Nothing in this package retries: every failure ends the attempt and the
caller starts over with a fresh challenge.
"""

from __future__ import annotations


class IsnadError(Exception):
    """Base class for every error raised by harbor_isnad."""


# ── Server side ──────────────────────────────────────────────────────────────


class AuthError(IsnadError):
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ChallengeNotFoundOrExpired(AuthError):
    """Unknown, expired, or already consumed challenge id."""

    status_code = 404

    def __init__(self, message: str = "Challenge not found or expired") -> None:
        super().__init__(message)


class PeerMismatch(AuthError):
    status_code = 403

    def __init__(self, message: str = "Peer ID mismatch") -> None:
        super().__init__(message)


class VerificationFailed(AuthError):
    """The oracle rejected the response."""

    status_code = 403

    def __init__(self, reason: str) -> None:
        super().__init__(f"Verification failed: {reason}")
        self.reason = reason


class AnswerShapeMismatch(VerificationFailed):
    """Answer count or variant does not line up with the challenge's tasks."""


class InternalReconstructionError(AuthError):
    status_code = 500

    def __init__(self, detail: str) -> None:
        super().__init__(f"Internal error: {detail}")


# ── Oracle ───────────────────────────────────────────────────────────────────


class ScoringError(IsnadError):
    """Raised by an oracle when a response does not meet the policy."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


# ── Client side ──────────────────────────────────────────────────────────────


class HandshakeError(IsnadError):
    """Base class for failures of the client handshake."""


class _HttpStatusError(HandshakeError):
    label = "Request failed"

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"{self.label} ({status_code}): {body}")
        self.status_code = status_code
        self.body = body


class ChallengeRequestFailed(_HttpStatusError):
    label = "Challenge request failed"


class VerificationRequestFailed(_HttpStatusError):
    label = "Verification failed"


class NetworkError(HandshakeError):
    """The transport could not deliver a request or read its reply."""


class DecodeError(HandshakeError):
    """The relay answered with a payload that does not parse."""
