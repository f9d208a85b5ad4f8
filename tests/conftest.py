from __future__ import annotations
import sys
from dataclasses import dataclass
from pathlib import Path
import pytest

_src = Path(__file__).resolve().parent.parent / "src"
if _src.exists() and str(_src) not in sys.path:
    sys.path.insert(0, str(_src))

from harbor_isnad import server  # noqa: E402
from harbor_isnad.oracle import ScriptedOracle  # noqa: E402
from harbor_isnad.protocol import (  # noqa: E402
    MetaQuestionAnswer,
    MetaQuestionTask,
    PatternCompletionAnswer,
    PatternCompletionTask,
    PatternSequence,
)
from harbor_isnad.store import SessionStore  # noqa: E402


class FakeClock:
    """Manually advanced stand-in for ``time.time``."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class SpyOracle(ScriptedOracle):
    """Scripted oracle that counts how often it is asked to score."""

    verify_calls: int = 0

    def verify(self, challenge, response, expected_answers):
        self.verify_calls += 1
        return super().verify(challenge, response, expected_answers)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def oracle():
    return SpyOracle(
        tasks=[
            PatternCompletionTask(sequences=[PatternSequence(given=[10, 20, 30], predict_count=2)]),
            MetaQuestionTask(prompt="Reply with the phrase.", expected_keyword="autonomous agent"),
        ],
        expected_answers=[
            PatternCompletionAnswer(predictions=[[40, 50]]),
            MetaQuestionAnswer(answer="autonomous agent"),
        ],
    )


@pytest.fixture
def store(oracle, clock):
    return SessionStore(oracle=oracle, clock=clock)


@pytest.fixture
def app_store(store, monkeypatch):
    """Install *store* as the auth server's process-wide store."""
    monkeypatch.setattr(server, "_store", store)
    return store


@pytest.fixture
def client(app_store):
    from fastapi.testclient import TestClient

    return TestClient(server.auth_app)
