"""Isnad — reverse-CAPTCHA verification for the Harbor agent mesh.

A relay only grants services to peers that prove they are autonomous
software agents:

- **Issue** a challenge bound to a peer id (:class:`SessionStore`)
- **Solve** it deterministically on the agent side (:mod:`harbor_isnad.solver`)
- **Verify** the answers exactly once and mint a time-limited token
- **Admit** peers by checking their token (:class:`TokenValidator`)
"""

from harbor_isnad.protocol import (
    Answer,
    AuthToken,
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
    TokenStatus,
)
from harbor_isnad.errors import (
    AnswerShapeMismatch,
    AuthError,
    ChallengeNotFoundOrExpired,
    ChallengeRequestFailed,
    DecodeError,
    HandshakeError,
    InternalReconstructionError,
    IsnadError,
    NetworkError,
    PeerMismatch,
    ScoringError,
    VerificationFailed,
    VerificationRequestFailed,
)
from harbor_isnad.textops import TextOp, apply_text_op
from harbor_isnad.oracle import ChallengeOracle, IsnadOracle, ScriptedOracle, Verification, VerificationPolicy
from harbor_isnad.solver import answer_question, solve_challenge, solve_pattern, solve_task
from harbor_isnad.config import IsnadSettings
from harbor_isnad.store import SessionStore, generate_token
from harbor_isnad.validator import TokenValidator
from harbor_isnad.client import AuthOrchestrator, HttpxTransport, authenticate_with_relay

__all__ = [
    # Protocol
    "Answer",
    "AuthToken",
    "CaptchaResponse",
    "Challenge",
    "MetaQuestionAnswer",
    "MetaQuestionTask",
    "ParallelQuestionsAnswer",
    "ParallelQuestionsTask",
    "PatternCompletionAnswer",
    "PatternCompletionTask",
    "PatternSequence",
    "ReadingComprehensionAnswer",
    "ReadingComprehensionTask",
    "Task",
    "TextTransformationAnswer",
    "TextTransformationTask",
    "TokenStatus",
    # Errors
    "IsnadError",
    "AuthError",
    "ChallengeNotFoundOrExpired",
    "PeerMismatch",
    "VerificationFailed",
    "AnswerShapeMismatch",
    "InternalReconstructionError",
    "ScoringError",
    "HandshakeError",
    "ChallengeRequestFailed",
    "VerificationRequestFailed",
    "NetworkError",
    "DecodeError",
    # Oracle
    "TextOp",
    "apply_text_op",
    "ChallengeOracle",
    "IsnadOracle",
    "ScriptedOracle",
    "Verification",
    "VerificationPolicy",
    # Solver
    "answer_question",
    "solve_challenge",
    "solve_pattern",
    "solve_task",
    # Server side
    "IsnadSettings",
    "SessionStore",
    "generate_token",
    "TokenValidator",
    # Client
    "AuthOrchestrator",
    "HttpxTransport",
    "authenticate_with_relay",
]
