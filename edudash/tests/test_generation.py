"""
Tests for question generation and revalidation of generator output.
"""

import pytest

from edudash.assessments.generation import (
    TemplateQuestionGenerator,
    accept_generated_questions,
    format_generated_item,
    parse_generated_payload,
)
from edudash.assessments.questions import QuestionType
from edudash.common.error_handling import GenerationError, ValidationError

ITEM = {
    "question": "Which keyword defines a function in Python?",
    "options": ["func", "def", "lambda", "fn"],
    "correctAnswer": 1,
    "explanation": "Functions are defined with def.",
}


class TestParsePayload:
    def test_plain_json_array(self):
        assert parse_generated_payload('[{"question": "Q"}]') == [{"question": "Q"}]

    def test_single_object_is_wrapped(self):
        assert parse_generated_payload('{"question": "Q"}') == [{"question": "Q"}]

    def test_markdown_fence_is_stripped(self):
        text = '```json\n[{"question": "Q"}]\n```'
        assert parse_generated_payload(text) == [{"question": "Q"}]

    def test_unparseable_reply(self):
        with pytest.raises(GenerationError):
            parse_generated_payload("Sorry, I cannot help with that.")

    def test_reply_without_objects(self):
        with pytest.raises(GenerationError):
            parse_generated_payload("[1, 2, 3]")


class TestFormatItem:
    def test_multiple_choice(self):
        question = format_generated_item(ITEM, QuestionType.MULTIPLE_CHOICE)

        assert question.points == 5
        assert question.correct_answer == "1"
        assert question.resolve_correct_option() == "def"
        assert question.explanation == "Functions are defined with def."

    def test_true_false_uses_fixed_options(self):
        question = format_generated_item(ITEM, QuestionType.TRUE_FALSE)

        assert question.options == ["True", "False"]
        assert question.correct_answer == "True"
        assert question.points == 3

    @pytest.mark.parametrize("key", ["False", False])
    def test_true_false_keeps_generated_answer_key(self, key):
        item = {"question": "Python lists are immutable.", "correctAnswer": key}

        question = format_generated_item(item, QuestionType.TRUE_FALSE)

        assert question.correct_answer == "False"

    def test_true_false_ignores_unusable_answer_key(self):
        item = {"question": "Python lists are mutable.", "correctAnswer": "yes"}
        assert format_generated_item(item, QuestionType.TRUE_FALSE).correct_answer == "True"

    def test_free_form_keeps_explanation_as_model_answer(self):
        question = format_generated_item(ITEM, QuestionType.SHORT_ANSWER)

        assert question.points == 10
        assert question.options is None
        assert question.correct_answer == "Functions are defined with def."

    def test_coding_keeps_code_template(self):
        item = dict(ITEM, codeTemplate="def solve():\n    pass")
        question = format_generated_item(item, QuestionType.CODING)
        assert question.code_template == "def solve():\n    pass"

    def test_explicit_points_win(self):
        question = format_generated_item(dict(ITEM, points=8), QuestionType.MULTIPLE_CHOICE)
        assert question.points == 8

    def test_multiple_choice_without_options_is_invalid(self):
        with pytest.raises(ValidationError):
            format_generated_item({"question": "Q"}, QuestionType.MULTIPLE_CHOICE)


class TestAcceptGenerated:
    def test_types_are_assigned_round_robin(self):
        outcome = accept_generated_questions(
            [ITEM, ITEM, ITEM],
            [QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE]
        )

        assert [q.type for q in outcome.accepted] == [
            QuestionType.MULTIPLE_CHOICE,
            QuestionType.TRUE_FALSE,
            QuestionType.MULTIPLE_CHOICE,
        ]
        assert outcome.rejected == []

    def test_malformed_items_are_rejected_individually(self):
        items = [
            ITEM,
            "not an object",
            dict(ITEM, correctAnswer="Rust"),
            dict(ITEM, question="  "),
        ]

        outcome = accept_generated_questions(items, [QuestionType.MULTIPLE_CHOICE])

        assert len(outcome.accepted) == 1
        assert [r.index for r in outcome.rejected] == [1, 2, 3]
        assert outcome.rejected[0].reason == "item is not an object"
        assert outcome.rejected[2].to_dict() == {"index": 3, "reason": "question text is empty"}

    def test_type_without_question_types(self):
        with pytest.raises(ValidationError):
            accept_generated_questions([ITEM], [])


@pytest.mark.asyncio
async def test_template_generator_output_is_accepted():
    generator = TemplateQuestionGenerator()
    items = await generator.generate_questions("Python basics", 3, [QuestionType.MULTIPLE_CHOICE])

    outcome = accept_generated_questions(items, [QuestionType.MULTIPLE_CHOICE])

    assert len(outcome.accepted) == 3
    assert "Python basics" in outcome.accepted[0].question_text
    assert outcome.accepted[0].resolve_correct_option() == "Option A - First answer"
