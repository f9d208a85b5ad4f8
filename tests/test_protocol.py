import pytest
from pydantic import ValidationError
from harbor_isnad.protocol import (
    CaptchaResponse,
    Challenge,
    MetaQuestionAnswer,
    MetaQuestionTask,
    ParallelQuestionsAnswer,
    PatternSequence,
    TextTransformationTask,
    check_answer_shape,
)
from harbor_isnad.textops import TextOp, apply_text_op, apply_text_ops


def test_challenge_parses_wire_json():
    challenge = Challenge.model_validate(
        {
            "challengeId": "c-1",
            "issuedAt": "2026-10-18T12:00:00Z",
            "tasks": [
                {"type": "text_transformation", "input": "mesh", "operations": ["reverse", "uppercase"]},
                {"type": "meta_question", "prompt": "Who are you?", "expectedKeyword": "autonomous agent"},
            ],
        }
    )
    assert challenge.challenge_id == "c-1"
    assert isinstance(challenge.tasks[0], TextTransformationTask)
    assert challenge.tasks[0].operations == [TextOp.REVERSE, TextOp.UPPERCASE]
    assert isinstance(challenge.tasks[1], MetaQuestionTask)
    assert challenge.tasks[1].expected_keyword == "autonomous agent"


def test_unknown_task_type_is_rejected():
    with pytest.raises(ValidationError):
        Challenge.model_validate({"tasks": [{"type": "draw_a_cat"}]})


def test_negative_predict_count_is_rejected():
    with pytest.raises(ValidationError):
        PatternSequence(given=[1, 2], predict_count=-1)


def test_challenge_is_immutable():
    challenge = Challenge()
    with pytest.raises(ValidationError):
        challenge.challenge_id = "other"


def test_response_serialises_camel_case():
    wire = CaptchaResponse(challenge_id="c-1", answers=[MetaQuestionAnswer(answer="hi")]).to_wire()
    assert set(wire) == {"challengeId", "submittedAt", "answers"}
    assert wire["answers"] == [{"type": "meta_question", "answer": "hi"}]


def test_answer_shape_check():
    challenge = Challenge(tasks=[MetaQuestionTask(prompt="p", expected_keyword="k")])
    check_answer_shape(challenge, CaptchaResponse(challenge_id=challenge.challenge_id, answers=[MetaQuestionAnswer(answer="k")]))

    with pytest.raises(ValueError, match="expected 1 answers, got 0"):
        check_answer_shape(challenge, CaptchaResponse(challenge_id=challenge.challenge_id))
    with pytest.raises(ValueError, match="answer 0 is parallel_questions"):
        check_answer_shape(
            challenge,
            CaptchaResponse(challenge_id=challenge.challenge_id, answers=[ParallelQuestionsAnswer(answers=[])]),
        )


def test_text_ops():
    assert apply_text_op("Relay", "rot13") == "Erynl"
    assert apply_text_op("agent mesh relay", TextOp.REVERSE_WORDS) == "relay mesh agent"
    assert apply_text_op("orbit cobalt mesh", TextOp.SORT_WORDS) == "cobalt mesh orbit"
    assert apply_text_ops("Mesh", [TextOp.LOWERCASE, TextOp.REMOVE_VOWELS]) == "msh"
    with pytest.raises(ValueError):
        apply_text_op("x", "explode")
