"""Runtime settings for the Isnad relay and client.

Values come from the environment (a ``.env`` file is honoured):

    ISNAD_CHALLENGE_TTL      seconds a pending challenge stays valid   (60)
    ISNAD_TOKEN_TTL          seconds a verified token stays valid      (3600)
    ISNAD_SWEEP_INTERVAL     seconds between background sweeps         (30)
    ISNAD_MIN_ELAPSED_MS     fastest plausible solve                   (0)
    ISNAD_MAX_ELAPSED_MS     slowest accepted solve                    (30000)
    ISNAD_MIN_CORRECT_RATIO  fraction of tasks that must be correct    (0.6)
    ISNAD_MAX_CLOCK_SKEW_MS  tolerated client clock lag                (2000)
    ISNAD_HOST / ISNAD_PORT  bind address of the auth server           (0.0.0.0:4002)
    ISNAD_CLIENT_TIMEOUT     HTTP timeout for the client handshake     (10.0)
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from harbor_isnad.oracle import VerificationPolicy

CHALLENGE_TTL_SECS = 60
TOKEN_TTL_SECS = 3600


@dataclass
class IsnadSettings:
    challenge_ttl: int = CHALLENGE_TTL_SECS
    token_ttl: int = TOKEN_TTL_SECS
    sweep_interval: float = 30.0
    min_elapsed_ms: int = 0
    max_elapsed_ms: int = 30_000
    min_correct_ratio: float = 0.6
    max_clock_skew_ms: int = 2_000
    host: str = "0.0.0.0"
    port: int = 4002
    client_timeout: float = 10.0

    def __post_init__(self) -> None:
        if self.challenge_ttl <= 0 or self.token_ttl <= 0:
            raise ValueError("TTLs must be positive")
        if self.sweep_interval <= 0:
            raise ValueError("sweep_interval must be positive")
        if not 0.0 <= self.min_correct_ratio <= 1.0:
            raise ValueError("min_correct_ratio must be between 0 and 1")

    @property
    def policy(self) -> VerificationPolicy:
        return VerificationPolicy(
            min_elapsed_ms=self.min_elapsed_ms,
            max_elapsed_ms=self.max_elapsed_ms,
            min_correct_ratio=self.min_correct_ratio,
            max_clock_skew_ms=self.max_clock_skew_ms,
        )

    @classmethod
    def from_env(cls) -> "IsnadSettings":
        load_dotenv()
        return cls(
            challenge_ttl=int(os.getenv("ISNAD_CHALLENGE_TTL", CHALLENGE_TTL_SECS)),
            token_ttl=int(os.getenv("ISNAD_TOKEN_TTL", TOKEN_TTL_SECS)),
            sweep_interval=float(os.getenv("ISNAD_SWEEP_INTERVAL", 30.0)),
            min_elapsed_ms=int(os.getenv("ISNAD_MIN_ELAPSED_MS", 0)),
            max_elapsed_ms=int(os.getenv("ISNAD_MAX_ELAPSED_MS", 30_000)),
            min_correct_ratio=float(os.getenv("ISNAD_MIN_CORRECT_RATIO", 0.6)),
            max_clock_skew_ms=int(os.getenv("ISNAD_MAX_CLOCK_SKEW_MS", 2_000)),
            host=os.getenv("ISNAD_HOST", "0.0.0.0"),
            port=int(os.getenv("ISNAD_PORT", 4002)),
            client_timeout=float(os.getenv("ISNAD_CLIENT_TIMEOUT", 10.0)),
        )
