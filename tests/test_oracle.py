from datetime import timedelta
import pytest
from harbor_isnad.errors import ScoringError
from harbor_isnad.oracle import TASK_KINDS, IsnadOracle, VerificationPolicy
from harbor_isnad.protocol import (
    CaptchaResponse,
    MetaQuestionAnswer,
    ParallelQuestionsAnswer,
    PatternCompletionAnswer,
    TextTransformationAnswer,
)
from harbor_isnad.solver import solve_challenge


def _respond(challenge, answers, after_ms=150):
    return CaptchaResponse(
        challenge_id=challenge.challenge_id,
        submitted_at=challenge.issued_at + timedelta(milliseconds=after_ms),
        answers=answers,
    )


def test_generates_one_task_per_kind():
    oracle = IsnadOracle(seed=1)
    challenge, expected = oracle.generate_challenge()
    assert [t.type for t in challenge.tasks] == list(TASK_KINDS)
    assert [a.type for a in expected] == list(TASK_KINDS)


def test_challenge_ids_are_unique():
    oracle = IsnadOracle(seed=1)
    ids = {oracle.generate_challenge()[0].challenge_id for _ in range(20)}
    assert len(ids) == 20


def test_expected_answers_score_perfectly():
    oracle = IsnadOracle(seed=3)
    challenge, expected = oracle.generate_challenge()
    result = oracle.verify(challenge, _respond(challenge, expected), expected)
    assert result.tasks_correct == result.tasks_total == 5
    assert result.elapsed_ms == 150


@pytest.mark.parametrize("seed", range(10))
def test_bundled_solver_passes_default_policy(seed):
    oracle = IsnadOracle(seed=seed)
    challenge, expected = oracle.generate_challenge()
    response = solve_challenge(challenge, now=challenge.issued_at + timedelta(milliseconds=40))
    result = oracle.verify(challenge, response, expected)
    # everything except reading comprehension
    assert result.tasks_correct == 4
    assert result.tasks_total == 5


def test_wrong_answers_are_rejected():
    oracle = IsnadOracle(task_kinds=["pattern_completion", "meta_question"], seed=5)
    challenge, expected = oracle.generate_challenge()
    wrong = [
        PatternCompletionAnswer(predictions=[[0]]),
        MetaQuestionAnswer(answer="I am a person"),
    ]
    with pytest.raises(ScoringError, match="0/2 tasks correct"):
        oracle.verify(challenge, _respond(challenge, wrong), expected)


def test_slow_response_is_rejected():
    oracle = IsnadOracle(policy=VerificationPolicy(max_elapsed_ms=5_000), seed=1)
    challenge, expected = oracle.generate_challenge()
    with pytest.raises(ScoringError, match="limit is 5000ms"):
        oracle.verify(challenge, _respond(challenge, expected, after_ms=6_000), expected)


def test_implausibly_fast_response_is_rejected():
    oracle = IsnadOracle(policy=VerificationPolicy(min_elapsed_ms=50), seed=1)
    challenge, expected = oracle.generate_challenge()
    with pytest.raises(ScoringError, match="below minimum"):
        oracle.verify(challenge, _respond(challenge, expected, after_ms=10), expected)


def test_small_clock_skew_is_tolerated():
    oracle = IsnadOracle(seed=1)
    challenge, expected = oracle.generate_challenge()
    result = oracle.verify(challenge, _respond(challenge, expected, after_ms=-500), expected)
    assert result.elapsed_ms == 0

    with pytest.raises(ScoringError, match="before the challenge was issued"):
        oracle.verify(challenge, _respond(challenge, expected, after_ms=-5_000), expected)


def test_answer_matching_rules():
    match = IsnadOracle.answer_matches
    assert match(ParallelQuestionsAnswer(answers=[" paris ", "6"]), ParallelQuestionsAnswer(answers=["Paris", "6"]))
    assert not match(ParallelQuestionsAnswer(answers=["Paris"]), ParallelQuestionsAnswer(answers=["Paris", "6"]))
    assert match(MetaQuestionAnswer(answer="Yes: Autonomous Agent."), MetaQuestionAnswer(answer="autonomous agent"))
    assert not match(TextTransformationAnswer(result="ABC"), TextTransformationAnswer(result="abc"))
    assert not match(MetaQuestionAnswer(answer="x"), TextTransformationAnswer(result="x"))


def test_rejects_unknown_task_kind():
    with pytest.raises(ValueError):
        IsnadOracle(task_kinds=["captcha_image"])
