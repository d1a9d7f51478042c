"""
Question Content Generation

Generators propose questions for a topic. Their output is untrusted:
every item is mapped onto a question type the assessment allows and then
revalidated as a Question before it is accepted.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence

from edudash.assessments.questions import Question, QuestionType, TRUE_FALSE_OPTIONS
from edudash.common.error_handling import GenerationError, ValidationError
from edudash.common.logger import app_logger

logger = app_logger.getChild("generation")

MIN_GENERATED = 1

DEFAULT_POINTS = {
    QuestionType.MULTIPLE_CHOICE: 5,
    QuestionType.TRUE_FALSE: 3,
}
FREE_FORM_POINTS = 10


class QuestionContentGenerator(ABC):
    """Source of candidate questions, such as an AI assistant."""

    @abstractmethod
    async def generate_questions(
        self,
        topic: str,
        count: int,
        question_types: Sequence[QuestionType]
    ) -> List[Dict[str, Any]]:
        """
        Propose raw question items.

        Each item is a mapping with ``question``, ``options``,
        ``correctAnswer`` (or ``correct_answer``), ``explanation`` and
        optionally ``points``; any of them may be missing or malformed.

        Raises:
            GenerationError: If the generator cannot produce any items
        """
        pass


class TemplateQuestionGenerator(QuestionContentGenerator):
    """Offline generator producing placeholder multiple-choice items for a topic."""

    async def generate_questions(
        self,
        topic: str,
        count: int,
        question_types: Sequence[QuestionType]
    ) -> List[Dict[str, Any]]:
        return [
            {
                "question": f"Question {i + 1}: What is an important concept in {topic}?",
                "options": [
                    "Option A - First answer",
                    "Option B - Second answer",
                    "Option C - Third answer",
                    "Option D - Fourth answer",
                ],
                "correctAnswer": 0,
                "explanation": f"This question tests your understanding of {topic}.",
            }
            for i in range(count)
        ]


def parse_generated_payload(text: str) -> List[Dict[str, Any]]:
    """
    Parse a generator's raw JSON reply, tolerating a markdown code fence.

    Raises:
        GenerationError: If the text is not a JSON object or array of objects
    """
    content = text.strip()
    if content.startswith("```"):
        content = content[3:]
        if content.startswith("json"):
            content = content[4:]
        if content.endswith("```"):
            content = content[:-3]
        content = content.strip()

    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as e:
        raise GenerationError("Could not parse question data from generator reply", cause=e)

    items = parsed if isinstance(parsed, list) else [parsed]
    if not items or not all(isinstance(item, dict) for item in items):
        raise GenerationError("Generator reply holds no question objects")
    return items


@dataclass
class RejectedItem:
    index: int
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"index": self.index, "reason": self.reason}


@dataclass
class GenerationOutcome:
    """Questions accepted from a generator and the items that were turned away."""
    accepted: List[Question] = field(default_factory=list)
    rejected: List[RejectedItem] = field(default_factory=list)


def format_generated_item(item: Mapping[str, Any], question_type: QuestionType) -> Question:
    """
    Map one raw generator item onto a question of the given type.

    Raises:
        ValidationError: If the resulting question is malformed
    """
    text = item.get("question") or item.get("question_text") or ""
    explanation = item.get("explanation") or ""
    correct = item.get("correctAnswer", item.get("correct_answer"))
    points = item.get("points")

    if question_type is QuestionType.MULTIPLE_CHOICE:
        return Question(
            question_text=text,
            type=question_type,
            points=points if points is not None else DEFAULT_POINTS[question_type],
            options=item.get("options") or [],
            correct_answer="0" if correct is None else str(correct),
            explanation=explanation,
        )

    if question_type is QuestionType.TRUE_FALSE:
        # Anything but a literal True/False answer key falls back to "True"
        answer_key = str(correct) if str(correct) in TRUE_FALSE_OPTIONS else "True"
        return Question(
            question_text=text,
            type=question_type,
            points=points if points is not None else DEFAULT_POINTS[question_type],
            options=list(TRUE_FALSE_OPTIONS),
            correct_answer=answer_key,
            explanation=explanation,
        )

    return Question(
        question_text=text,
        type=question_type,
        points=points if points is not None else FREE_FORM_POINTS,
        correct_answer=explanation,
        explanation=explanation,
        code_template=item.get("codeTemplate") if question_type is QuestionType.CODING else None,
    )


def accept_generated_questions(
    items: Sequence[Any],
    question_types: Sequence[QuestionType]
) -> GenerationOutcome:
    """
    Revalidate generator output.

    Items are assigned the allowed question types round-robin. Each item
    is accepted or rejected on its own.

    Args:
        items: Raw generator items
        question_types: Question types the target assessment allows, in order

    Returns:
        The accepted questions and the rejected item indexes with reasons
    """
    if not question_types:
        raise ValidationError("The assessment does not take generated questions", field="type")

    outcome = GenerationOutcome()
    for index, item in enumerate(items):
        question_type = question_types[index % len(question_types)]
        if not isinstance(item, Mapping):
            outcome.rejected.append(RejectedItem(index, "item is not an object"))
            continue
        try:
            question = format_generated_item(item, question_type)
        except ValidationError as e:
            outcome.rejected.append(RejectedItem(index, e.message))
            continue
        if not question.question_text.strip():
            outcome.rejected.append(RejectedItem(index, "question text is empty"))
            continue
        outcome.accepted.append(question)

    if outcome.rejected:
        logger.warning(f"Rejected {len(outcome.rejected)} of {len(items)} generated question(s)")
    return outcome
