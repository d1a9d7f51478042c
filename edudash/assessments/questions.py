"""
Question Model

This module defines the gradable unit of an assessment: its text, type,
point value, and the type-specific answer shape.
"""

import enum
from dataclasses import dataclass
from typing import List, Optional

from edudash.common.error_handling import ValidationError
from edudash.common.serialization import SerializableMixin


class QuestionType(enum.Enum):
    """Types of question an assessment can contain."""
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"
    ESSAY = "essay"
    CODING = "coding"

    @property
    def is_objective(self) -> bool:
        """Whether answers to this type are compared automatically."""
        return self in OBJECTIVE_TYPES


OBJECTIVE_TYPES = frozenset({QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE})

TRUE_FALSE_OPTIONS = ["True", "False"]

MIN_OPTIONS = 2


def _coerce_question_type(value) -> QuestionType:
    if isinstance(value, QuestionType):
        return value
    try:
        return QuestionType(value)
    except ValueError:
        raise ValidationError(f"Invalid question type: {value}", field="type")


@dataclass
class Question(SerializableMixin):
    """
    One gradable unit of an assessment.

    Objective questions (multiple choice, true/false) carry at least two
    options and a correct answer that names one of them, either by value
    or by its index written as a string. For short answer, essay, and
    coding questions ``correct_answer`` is a model answer or grading
    rubric for the instructor and is never compared automatically.

    Attributes:
        question_text: The prompt shown to the learner (may be empty while drafting)
        type: The question type
        points: Points awarded for a correct answer
        options: Answer options for objective questions
        correct_answer: Correct option (value or index) or model answer
        explanation: Explanation shown after grading
        code_template: Starter code for coding questions
    """

    __serializable_fields__ = [
        "question_text", "type", "points", "options", "correct_answer",
        "explanation", "code_template"
    ]
    __optional_fields__ = [
        "points", "options", "correct_answer", "explanation", "code_template"
    ]

    question_text: str
    type: QuestionType
    points: float = 0
    options: Optional[List[str]] = None
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None
    code_template: Optional[str] = None

    def __post_init__(self):
        """Normalize field types and validate the type-specific shape."""
        self.type = _coerce_question_type(self.type)

        if self.question_text is None:
            self.question_text = ""

        if isinstance(self.points, bool) or not isinstance(self.points, (int, float)):
            raise ValidationError(f"Question points must be a number, got {self.points!r}", field="points")

        if self.options is not None:
            self.options = [str(option) for option in self.options]

        if self.correct_answer is not None and not isinstance(self.correct_answer, str):
            self.correct_answer = str(self.correct_answer)

        self.validate()

    def validate(self) -> None:
        """
        Check the type-specific answer shape.

        Raises:
            ValidationError: If points are negative, an objective question
                has fewer than two options, or its correct answer does not
                name one of the options
        """
        if self.points < 0:
            raise ValidationError(f"Question points cannot be negative: {self.points}", field="points")

        if not self.type.is_objective:
            return

        if not self.options or len(self.options) < MIN_OPTIONS:
            raise ValidationError(
                f"{self.type.value} questions need at least {MIN_OPTIONS} options",
                field="options"
            )

        if self.correct_answer is None:
            raise ValidationError(f"{self.type.value} questions need a correct answer", field="correct_answer")

        if self.resolve_correct_option() is None:
            raise ValidationError(
                f"Correct answer {self.correct_answer!r} is not one of the options",
                field="correct_answer"
            )

    @property
    def is_objective(self) -> bool:
        return self.type.is_objective

    def resolve_correct_option(self) -> Optional[str]:
        """
        Get the option text the stored correct answer denotes.

        Returns:
            The matching option, or None for free-form questions and
            answers that name no option
        """
        if not self.is_objective or self.correct_answer is None or not self.options:
            return None

        if self.correct_answer in self.options:
            return self.correct_answer

        if self.correct_answer.isdigit():
            index = int(self.correct_answer)
            if index < len(self.options):
                return self.options[index]

        return None

    def is_correct(self, answer: str) -> bool:
        """
        Compare a learner's answer with the correct answer.

        The comparison is exact and case-sensitive against either the
        stored representation or the option text it denotes.

        Raises:
            ValueError: If called on a question that is not auto-graded
        """
        if not self.is_objective:
            raise ValueError(f"{self.type.value} questions are graded by an instructor")
        return answer == self.correct_answer or answer == self.resolve_correct_option()
