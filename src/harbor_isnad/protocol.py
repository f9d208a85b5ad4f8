"""Isnad Protocol — challenge, task, answer and wire message models.

A challenge is an ordered list of *tasks*; a response is an ordered list of
*answers* where ``answers[i]`` answers ``tasks[i]``.  Both task and answer
are closed unions discriminated by a ``type`` field:

    pattern_completion · text_transformation · parallel_questions
    reading_comprehension · meta_question

Field names travel as camelCase JSON (``challengeId``, ``predictCount``,
``submittedAt``); Python code may use either spelling on input.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from harbor_isnad.textops import TextOp


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WireModel(BaseModel):
    """Base for everything that crosses the HTTP boundary."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class FrozenWireModel(WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ── Tasks ────────────────────────────────────────────────────────────────────


class PatternSequence(FrozenWireModel):
    given: list[int]
    predict_count: int = Field(ge=0)


class PatternCompletionTask(FrozenWireModel):
    type: Literal["pattern_completion"] = "pattern_completion"
    sequences: list[PatternSequence]


class TextTransformationTask(FrozenWireModel):
    type: Literal["text_transformation"] = "text_transformation"
    input: str
    operations: list[TextOp]


class ParallelQuestionsTask(FrozenWireModel):
    type: Literal["parallel_questions"] = "parallel_questions"
    questions: list[str]


class ReadingComprehensionTask(FrozenWireModel):
    type: Literal["reading_comprehension"] = "reading_comprehension"
    passage: str
    questions: list[str]


class MetaQuestionTask(FrozenWireModel):
    type: Literal["meta_question"] = "meta_question"
    prompt: str
    expected_keyword: str


Task = Annotated[
    Union[
        PatternCompletionTask,
        TextTransformationTask,
        ParallelQuestionsTask,
        ReadingComprehensionTask,
        MetaQuestionTask,
    ],
    Field(discriminator="type"),
]


# ── Answers ──────────────────────────────────────────────────────────────────


class PatternCompletionAnswer(FrozenWireModel):
    type: Literal["pattern_completion"] = "pattern_completion"
    predictions: list[list[int]]


class TextTransformationAnswer(FrozenWireModel):
    type: Literal["text_transformation"] = "text_transformation"
    result: str


class ParallelQuestionsAnswer(FrozenWireModel):
    type: Literal["parallel_questions"] = "parallel_questions"
    answers: list[str]


class ReadingComprehensionAnswer(FrozenWireModel):
    type: Literal["reading_comprehension"] = "reading_comprehension"
    answers: list[str]


class MetaQuestionAnswer(FrozenWireModel):
    type: Literal["meta_question"] = "meta_question"
    answer: str


Answer = Annotated[
    Union[
        PatternCompletionAnswer,
        TextTransformationAnswer,
        ParallelQuestionsAnswer,
        ReadingComprehensionAnswer,
        MetaQuestionAnswer,
    ],
    Field(discriminator="type"),
]


# ── Challenge / response ─────────────────────────────────────────────────────


class Challenge(FrozenWireModel):
    """A generated challenge.  Never mutated after the oracle builds it."""

    challenge_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    issued_at: datetime = Field(default_factory=_utcnow)
    tasks: list[Task] = Field(default_factory=list)


class CaptchaResponse(FrozenWireModel):
    challenge_id: str
    submitted_at: datetime = Field(default_factory=_utcnow)
    answers: list[Answer] = Field(default_factory=list)


def check_answer_shape(challenge: Challenge, response: CaptchaResponse) -> None:
    """Raise ``ValueError`` unless every task has exactly one answer of its own kind."""
    if len(response.answers) != len(challenge.tasks):
        raise ValueError(
            f"expected {len(challenge.tasks)} answers, got {len(response.answers)}"
        )
    for idx, (task, answer) in enumerate(zip(challenge.tasks, response.answers)):
        if task.type != answer.type:
            raise ValueError(f"answer {idx} is {answer.type}, task is {task.type}")


# ── HTTP bodies ──────────────────────────────────────────────────────────────


class ChallengeRequest(WireModel):
    peer_id: str


class ChallengeEnvelope(WireModel):
    challenge: Challenge


class VerifyRequest(WireModel):
    peer_id: str
    response: CaptchaResponse


class AuthToken(WireModel):
    """Successful verification result, as returned by ``POST /auth/verify``."""

    token: str
    expires_in_seconds: int
    peer_id: str

    def summary(self) -> str:
        return f"{self.token[:20]}... (peer {self.peer_id}, expires in {self.expires_in_seconds}s)"


class CheckTokenRequest(WireModel):
    token: str


class TokenStatus(WireModel):
    valid: bool
    peer_id: str | None = None
    remaining_seconds: int = 0


class ErrorBody(WireModel):
    error: str
