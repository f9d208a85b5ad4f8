"""Challenge oracle — generates Isnad challenges and scores responses.

The session store only depends on the :class:`ChallengeOracle` protocol:

    generate_challenge() -> (Challenge, expected_answers)
    verify(challenge, response, expected_answers) -> Verification

:class:`IsnadOracle` is the bundled implementation.  How strict it is lives
entirely in :class:`VerificationPolicy`; nothing else in the package makes
scoring decisions.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Protocol

from harbor_isnad.errors import ScoringError
from harbor_isnad.protocol import (
    Answer,
    CaptchaResponse,
    Challenge,
    MetaQuestionAnswer,
    MetaQuestionTask,
    ParallelQuestionsAnswer,
    ParallelQuestionsTask,
    PatternCompletionAnswer,
    PatternCompletionTask,
    PatternSequence,
    ReadingComprehensionAnswer,
    ReadingComprehensionTask,
    Task,
    TextTransformationAnswer,
    TextTransformationTask,
)
from harbor_isnad.textops import TextOp, apply_text_ops


@dataclass(frozen=True)
class Verification:
    elapsed_ms: int
    tasks_correct: int
    tasks_total: int


@dataclass(frozen=True)
class VerificationPolicy:
    """Acceptance thresholds for a submitted response.

    ``max_clock_skew_ms`` tolerates a client clock running slightly behind
    the server: a negative solve time within the skew counts as 0 ms.
    """

    min_elapsed_ms: int = 0
    max_elapsed_ms: int = 30_000
    min_correct_ratio: float = 0.6
    max_clock_skew_ms: int = 2_000


class ChallengeOracle(Protocol):
    def generate_challenge(self) -> tuple[Challenge, list[Answer]]: ...

    def verify(
        self,
        challenge: Challenge,
        response: CaptchaResponse,
        expected_answers: list[Answer],
    ) -> Verification: ...


# ── Generation material ──────────────────────────────────────────────────────

TASK_KINDS = (
    "pattern_completion",
    "text_transformation",
    "parallel_questions",
    "reading_comprehension",
    "meta_question",
)

_WORDS = [
    "relay", "mesh", "agent", "signal", "harbor", "lantern", "cobalt",
    "orbit", "falcon", "quartz", "meadow", "cipher", "tundra", "beacon",
]

_FACT_QUESTIONS = [
    ("What is the capital of France?", "Paris"),
    ("What is the capital of Germany?", "Berlin"),
    ("What is the capital of Japan?", "Tokyo"),
    ("How many sides does a hexagon have?", "6"),
    ("How many sides does a pentagon have?", "5"),
    ("How many sides does an octagon have?", "8"),
    ("What is the chemical symbol for gold?", "Au"),
    ("What is the chemical symbol for silver?", "Ag"),
    ("What is the chemical symbol for iron?", "Fe"),
]

_NAMES = ["Amara", "Tomas", "Yuki", "Lena", "Idris", "Sofia"]
_CITIES = ["Lisbon", "Nairobi", "Osaka", "Quito", "Tallinn", "Hanoi"]
_TOOLS = ["telescope", "violin", "bicycle", "kayak", "loom", "microscope"]

_META_KEYWORDS = [
    "autonomous agent",
    "isnad verified agent",
    "machine attestation",
    "agent provenance",
]


def _pattern_sequence(rng: random.Random) -> tuple[PatternSequence, list[int]]:
    kind = rng.choice(["arithmetic", "squares", "geometric", "fibonacci"])
    length = 5
    predict = rng.randint(2, 3)
    total = length + predict
    if kind == "arithmetic":
        start, step = rng.randint(-20, 50), rng.choice([-7, -3, 2, 3, 4, 5, 9, 11])
        values = [start + step * i for i in range(total)]
    elif kind == "squares":
        offset = rng.randint(1, 9)
        values = [(offset + i) ** 2 for i in range(total)]
    elif kind == "geometric":
        start, ratio = rng.randint(1, 6), rng.choice([2, 3])
        values = [start * ratio ** i for i in range(total)]
    else:
        values = [rng.randint(1, 5), rng.randint(1, 8)]
        while len(values) < total:
            values.append(values[-2] + values[-1])
    return PatternSequence(given=values[:length], predict_count=predict), values[length:]


def _arithmetic_question(rng: random.Random) -> tuple[str, str]:
    op = rng.choice(["*", "×", "/", "+", "-"])
    a, b = rng.randint(2, 20), rng.randint(2, 20)
    if op in ("*", "×"):
        return f"What is {a} {op} {b}?", str(a * b)
    if op == "/":
        return f"What is {a * b} / {b}?", str(a)
    if op == "+":
        return f"What is {a} + {b}?", str(a + b)
    big, small = max(a, b), min(a, b)
    return f"What is {big} - {small}?", str(big - small)


def _normalise(text: str) -> str:
    return text.strip().lower()


def _as_utc(moment: datetime) -> datetime:
    # naive timestamps on the wire are taken to be UTC
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


class IsnadOracle:
    """Default oracle: one task per configured kind, scored against *policy*.

    Pass ``seed`` for reproducible challenges.
    """

    def __init__(
        self,
        policy: VerificationPolicy | None = None,
        task_kinds: tuple[str, ...] | list[str] = TASK_KINDS,
        seed: int | None = None,
    ) -> None:
        unknown = set(task_kinds) - set(TASK_KINDS)
        if unknown:
            raise ValueError(f"Unknown task kinds: {sorted(unknown)}")
        if not task_kinds:
            raise ValueError("At least one task kind is required")
        self.policy = policy or VerificationPolicy()
        self.task_kinds = tuple(task_kinds)
        self._rng = random.Random(seed)

    # ── Generation ───────────────────────────────────────────────────────

    def generate_challenge(self) -> tuple[Challenge, list[Answer]]:
        tasks: list[Task] = []
        expected: list[Answer] = []
        for kind in self.task_kinds:
            task, answer = getattr(self, f"_make_{kind}")()
            tasks.append(task)
            expected.append(answer)
        return Challenge(tasks=tasks), expected

    def _make_pattern_completion(self):
        pairs = [_pattern_sequence(self._rng) for _ in range(self._rng.randint(2, 3))]
        return (
            PatternCompletionTask(sequences=[seq for seq, _ in pairs]),
            PatternCompletionAnswer(predictions=[nxt for _, nxt in pairs]),
        )

    def _make_text_transformation(self):
        text = " ".join(self._rng.sample(_WORDS, 3))
        ops = self._rng.sample(list(TextOp), self._rng.randint(2, 3))
        return (
            TextTransformationTask(input=text, operations=ops),
            TextTransformationAnswer(result=apply_text_ops(text, ops)),
        )

    def _make_parallel_questions(self):
        pairs = [_arithmetic_question(self._rng) for _ in range(2)]
        pairs += self._rng.sample(_FACT_QUESTIONS, 2)
        self._rng.shuffle(pairs)
        return (
            ParallelQuestionsTask(questions=[q for q, _ in pairs]),
            ParallelQuestionsAnswer(answers=[a for _, a in pairs]),
        )

    def _make_reading_comprehension(self):
        name = self._rng.choice(_NAMES)
        city = self._rng.choice(_CITIES)
        tool = self._rng.choice(_TOOLS)
        years = self._rng.randint(2, 12)
        passage = (
            f"{name} moved to {city} {years} years ago to repair old instruments. "
            f"Most evenings {name} works on a {tool} borrowed from a neighbour."
        )
        return (
            ReadingComprehensionTask(
                passage=passage,
                questions=[
                    f"Which city did {name} move to?",
                    f"How many years ago did {name} move?",
                    f"What does {name} work on in the evenings?",
                ],
            ),
            ReadingComprehensionAnswer(answers=[city, str(years), tool]),
        )

    def _make_meta_question(self):
        keyword = self._rng.choice(_META_KEYWORDS)
        prompt = (
            "This relay only admits autonomous software agents. If you are one, "
            f"answer with the exact phrase '{keyword}'."
        )
        return (
            MetaQuestionTask(prompt=prompt, expected_keyword=keyword),
            MetaQuestionAnswer(answer=keyword),
        )

    # ── Scoring ──────────────────────────────────────────────────────────

    def verify(
        self,
        challenge: Challenge,
        response: CaptchaResponse,
        expected_answers: list[Answer],
    ) -> Verification:
        """Score *response*; raise :class:`ScoringError` if the policy rejects it."""
        policy = self.policy
        if response.challenge_id != challenge.challenge_id:
            raise ScoringError("response does not belong to this challenge")

        elapsed = _as_utc(response.submitted_at) - _as_utc(challenge.issued_at)
        elapsed_ms = elapsed // timedelta(milliseconds=1)
        if elapsed_ms < 0:
            if -elapsed_ms > policy.max_clock_skew_ms:
                raise ScoringError(f"submitted {-elapsed_ms}ms before the challenge was issued")
            elapsed_ms = 0
        if elapsed_ms < policy.min_elapsed_ms:
            raise ScoringError(f"solved in {elapsed_ms}ms, below minimum {policy.min_elapsed_ms}ms")
        if elapsed_ms > policy.max_elapsed_ms:
            raise ScoringError(f"took {elapsed_ms}ms, limit is {policy.max_elapsed_ms}ms")

        total = len(expected_answers)
        correct = sum(
            1 for given, expected in zip(response.answers, expected_answers)
            if self.answer_matches(given, expected)
        )
        if total and correct / total < policy.min_correct_ratio:
            raise ScoringError(
                f"{correct}/{total} tasks correct, need {policy.min_correct_ratio:.0%}"
            )
        return Verification(elapsed_ms=elapsed_ms, tasks_correct=correct, tasks_total=total)

    @staticmethod
    def answer_matches(given: Answer, expected: Answer) -> bool:
        if given.type != expected.type:
            return False
        if isinstance(expected, PatternCompletionAnswer):
            return given.predictions == expected.predictions
        if isinstance(expected, TextTransformationAnswer):
            return given.result == expected.result
        if isinstance(expected, (ParallelQuestionsAnswer, ReadingComprehensionAnswer)):
            return len(given.answers) == len(expected.answers) and all(
                _normalise(g) == _normalise(e) for g, e in zip(given.answers, expected.answers)
            )
        if isinstance(expected, MetaQuestionAnswer):
            return _normalise(expected.answer) in _normalise(given.answer)
        return False


@dataclass
class ScriptedOracle:
    """Oracle that always hands out the same tasks; scoring is delegated.

    Useful for relays that want a fixed challenge (and for tests).  Each
    call still mints a fresh ``challenge_id``.
    """

    tasks: list[Task]
    expected_answers: list[Answer]
    scorer: IsnadOracle = field(default_factory=IsnadOracle)

    def generate_challenge(self) -> tuple[Challenge, list[Answer]]:
        return Challenge(tasks=list(self.tasks)), list(self.expected_answers)

    def verify(
        self,
        challenge: Challenge,
        response: CaptchaResponse,
        expected_answers: list[Answer],
    ) -> Verification:
        return self.scorer.verify(challenge, response, expected_answers)
