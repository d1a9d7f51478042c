"""
Tests for the Question model.

This module focuses on:
1. Shape validation of objective and free-form questions
2. Resolution of the stored correct answer
3. Answer comparison
"""

import pytest

from edudash.assessments.questions import Question, QuestionType
from edudash.common.error_handling import ValidationError
from edudash.tests.factories import mc_question, short_answer, tf_question


def test_multiple_choice_requires_two_options():
    """Test that objective questions need at least two options."""
    with pytest.raises(ValidationError) as exc_info:
        Question(
            question_text="Pick one",
            type=QuestionType.MULTIPLE_CHOICE,
            points=5,
            options=["only"],
            correct_answer="0",
        )
    assert exc_info.value.details["field"] == "options"


def test_correct_answer_must_name_an_option():
    """Test that the correct answer must be an option value or index."""
    with pytest.raises(ValidationError):
        mc_question(correct="7")
    with pytest.raises(ValidationError):
        mc_question(correct="12")


def test_objective_question_requires_correct_answer():
    with pytest.raises(ValidationError):
        Question(
            question_text="True?",
            type=QuestionType.TRUE_FALSE,
            options=["True", "False"],
        )


def test_negative_points_rejected():
    with pytest.raises(ValidationError):
        mc_question(points=-1)


def test_non_numeric_points_rejected():
    with pytest.raises(ValidationError):
        mc_question(points="5")


def test_free_form_questions_need_no_options():
    """Test that short answer, essay and coding carry free-form model answers."""
    question = short_answer()
    assert question.options is None
    assert not question.is_objective
    assert question.resolve_correct_option() is None

    coding = Question(
        question_text="Write fizzbuzz",
        type="coding",
        points=10,
        code_template="def fizzbuzz(n):\n    pass",
    )
    assert coding.type is QuestionType.CODING


def test_invalid_type_rejected():
    with pytest.raises(ValidationError):
        Question(question_text="?", type="matching")


def test_correct_answer_resolves_by_index_or_value():
    """Test that an index string and the option value resolve to the same option."""
    by_index = mc_question(correct="1")
    by_value = mc_question(correct="4")

    assert by_index.resolve_correct_option() == "4"
    assert by_value.resolve_correct_option() == "4"


def test_is_correct_accepts_stored_form_and_option_text():
    question = mc_question(correct="1")

    assert question.is_correct("4")
    assert question.is_correct("1")
    assert not question.is_correct("3")


def test_is_correct_is_case_sensitive():
    question = tf_question(correct="True")

    assert question.is_correct("True")
    assert not question.is_correct("true")
    assert not question.is_correct(" True")


def test_is_correct_rejects_free_form_questions():
    with pytest.raises(ValueError):
        short_answer().is_correct("anything")


def test_numeric_correct_answer_is_stringified():
    question = Question(
        question_text="Pick",
        type="multiple_choice",
        points=5,
        options=["a", "b"],
        correct_answer=0,
    )
    assert question.correct_answer == "0"
    assert question.resolve_correct_option() == "a"


def test_question_round_trips_through_dict():
    question = mc_question()
    restored = Question.from_dict(question.to_dict())

    assert restored == question
    assert question.to_dict()["type"] == "multiple_choice"
