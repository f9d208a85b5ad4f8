"""Session store — pending challenges and verified tokens.

Lifecycle of a challenge::

    issued ──verify──▶ verified | failed
       └────sweep───▶ expired

Every state after *issued* is terminal: the pending entry is popped the
moment a verification attempt looks it up, whatever the outcome, so a
solved challenge can never be replayed.

The two regions (pending challenges, verified tokens) have their own
locks.  Locks only cover dict reads and writes; the oracle is always
called with no lock held.  Token validity is computed from the token's
age on every read, so an expired token is refused even before the sweeper
gets round to deleting it.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
import struct
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from pydantic import ValidationError

from harbor_isnad.config import CHALLENGE_TTL_SECS, TOKEN_TTL_SECS, IsnadSettings
from harbor_isnad.errors import (
    AnswerShapeMismatch,
    ChallengeNotFoundOrExpired,
    InternalReconstructionError,
    PeerMismatch,
    ScoringError,
    VerificationFailed,
)
from harbor_isnad.oracle import ChallengeOracle, IsnadOracle
from harbor_isnad.protocol import (
    Answer,
    AuthToken,
    CaptchaResponse,
    Challenge,
    TokenStatus,
    check_answer_shape,
)

logger = logging.getLogger(__name__)

TOKEN_PREFIX = "isnad_"


def generate_token(peer_id: str, timestamp: float | None = None) -> str:
    """``isnad_`` + sha256(peer_id ‖ 16 random bytes ‖ int64-LE unix seconds)."""
    ts = int(time.time() if timestamp is None else timestamp)
    hasher = hashlib.sha256()
    hasher.update(peer_id.encode("utf-8"))
    hasher.update(secrets.token_bytes(16))
    hasher.update(struct.pack("<q", ts))
    return TOKEN_PREFIX + hasher.hexdigest()


@dataclass
class PendingChallenge:
    expected_answers: list[Answer]
    raw_challenge: dict[str, Any]
    peer_id: str
    issued_at: float


@dataclass
class VerifiedToken:
    token: str
    peer_id: str
    verified_at: float


class SessionStore:
    """Thread-safe registry of pending challenges and issued tokens.

    Usage:
        store = SessionStore(oracle=IsnadOracle())
        challenge = store.request_challenge(peer_id)
        token = store.verify_response(response, peer_id)
        store.check_token(token.token).valid   # True

    ``clock`` returns unix seconds; swap it out to simulate elapsed time.
    """

    def __init__(
        self,
        oracle: ChallengeOracle | None = None,
        challenge_ttl: int = CHALLENGE_TTL_SECS,
        token_ttl: int = TOKEN_TTL_SECS,
        sweep_interval: float = 30.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.oracle: ChallengeOracle = oracle or IsnadOracle()
        self.challenge_ttl = challenge_ttl
        self.token_ttl = token_ttl
        self.sweep_interval = sweep_interval
        self.clock = clock

        self._pending: dict[str, PendingChallenge] = {}
        self._pending_lock = threading.Lock()
        self._verified: dict[str, VerifiedToken] = {}
        self._verified_lock = threading.Lock()

        self._sweeper: threading.Thread | None = None
        self._stop = threading.Event()

    @classmethod
    def from_settings(
        cls,
        settings: IsnadSettings,
        oracle: ChallengeOracle | None = None,
        clock: Callable[[], float] = time.time,
    ) -> "SessionStore":
        return cls(
            oracle=oracle or IsnadOracle(policy=settings.policy),
            challenge_ttl=settings.challenge_ttl,
            token_ttl=settings.token_ttl,
            sweep_interval=settings.sweep_interval,
            clock=clock,
        )

    def _age(self, since: float) -> int:
        return max(0, int(self.clock() - since))

    # ── Challenges ───────────────────────────────────────────────────────

    def request_challenge(self, peer_id: str) -> Challenge:
        """Issue a new challenge bound to *peer_id*.  Expected answers stay here."""
        self.cleanup()

        challenge, expected_answers = self.oracle.generate_challenge()
        pending = PendingChallenge(
            expected_answers=expected_answers,
            raw_challenge=challenge.to_wire(),
            peer_id=peer_id,
            issued_at=self.clock(),
        )
        with self._pending_lock:
            self._pending[challenge.challenge_id] = pending

        logger.info("Issued CAPTCHA challenge %s for peer %s", challenge.challenge_id, peer_id)
        return challenge

    def _take_pending(self, challenge_id: str) -> PendingChallenge:
        with self._pending_lock:
            pending = self._pending.pop(challenge_id, None)
        if pending is None or self._age(pending.issued_at) >= self.challenge_ttl:
            raise ChallengeNotFoundOrExpired()
        return pending

    def verify_response(self, response: CaptchaResponse, peer_id: str) -> AuthToken:
        """Consume the challenge that *response* answers; mint a token on success.

        Raises:
            ChallengeNotFoundOrExpired: unknown, expired or already used id.
            PeerMismatch: the challenge was issued to another peer.
            InternalReconstructionError: the stored challenge no longer parses.
            VerificationFailed: wrong answer shape, or the oracle said no.
        """
        pending = self._take_pending(response.challenge_id)

        if pending.peer_id != peer_id:
            logger.warning(
                "Challenge %s was issued to %s but verified by %s",
                response.challenge_id, pending.peer_id, peer_id,
            )
            raise PeerMismatch()

        try:
            challenge = Challenge.model_validate(pending.raw_challenge)
        except ValidationError as e:
            raise InternalReconstructionError(str(e)) from e

        try:
            check_answer_shape(challenge, response)
        except ValueError as e:
            logger.warning("CAPTCHA verification failed for peer %s: %s", peer_id, e)
            raise AnswerShapeMismatch(str(e)) from e

        try:
            verification = self.oracle.verify(challenge, response, pending.expected_answers)
        except ScoringError as e:
            logger.warning("CAPTCHA verification failed for peer %s: %s", peer_id, e.reason)
            raise VerificationFailed(e.reason) from e

        logger.info(
            "CAPTCHA verified for peer %s in %dms (%d/%d correct)",
            peer_id, verification.elapsed_ms, verification.tasks_correct, verification.tasks_total,
        )

        now = self.clock()
        token = generate_token(peer_id, now)
        with self._verified_lock:
            self._verified[token] = VerifiedToken(token=token, peer_id=peer_id, verified_at=now)

        return AuthToken(token=token, expires_in_seconds=self.token_ttl, peer_id=peer_id)

    # ── Tokens ───────────────────────────────────────────────────────────

    def is_peer_verified(self, peer_id: str) -> bool:
        with self._verified_lock:
            entries = list(self._verified.values())
        return any(
            v.peer_id == peer_id and self._age(v.verified_at) < self.token_ttl
            for v in entries
        )

    def check_token(self, token: str) -> TokenStatus:
        with self._verified_lock:
            entry = self._verified.get(token)
        if entry is None:
            return TokenStatus(valid=False)
        age = self._age(entry.verified_at)
        if age >= self.token_ttl:
            return TokenStatus(valid=False)
        return TokenStatus(valid=True, peer_id=entry.peer_id, remaining_seconds=self.token_ttl - age)

    # ── Housekeeping ─────────────────────────────────────────────────────

    def cleanup(self) -> tuple[int, int]:
        """Drop expired challenges and tokens.  Returns how many of each were removed."""
        with self._pending_lock:
            stale = [
                cid for cid, p in self._pending.items()
                if self._age(p.issued_at) >= self.challenge_ttl
            ]
            for cid in stale:
                del self._pending[cid]

        with self._verified_lock:
            expired = [
                tok for tok, v in self._verified.items()
                if self._age(v.verified_at) >= self.token_ttl
            ]
            for tok in expired:
                del self._verified[tok]

        if stale or expired:
            logger.debug("Swept %d challenges and %d tokens", len(stale), len(expired))
        return len(stale), len(expired)

    def start_sweeper(self) -> None:
        """Run :meth:`cleanup` every ``sweep_interval`` seconds in a daemon thread."""
        if self._sweeper and self._sweeper.is_alive():
            return
        self._stop.clear()
        self._sweeper = threading.Thread(target=self._sweep_loop, name="isnad-sweeper", daemon=True)
        self._sweeper.start()

    def stop_sweeper(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._sweeper:
            self._sweeper.join(timeout=timeout)
            self._sweeper = None

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self.sweep_interval):
            self.cleanup()

    def stats(self) -> dict[str, int]:
        with self._pending_lock:
            pending = len(self._pending)
        with self._verified_lock:
            tokens = len(self._verified)
        return {
            "pending_challenges": pending,
            "verified_tokens": tokens,
            "challenge_ttl": self.challenge_ttl,
            "token_ttl": self.token_ttl,
        }
