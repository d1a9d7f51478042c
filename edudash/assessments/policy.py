"""
Assessment Type Policy

Per assessment type: which question types are legal, how the assessment
is scored, which settings apply, and what a freshly initialized
assessment of that type contains.
"""

import enum
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional

from edudash.assessments.content import (
    AssessmentContent,
    AssessmentType,
    CapstoneContent,
    CapstoneMilestone,
    ProjectContent,
    ProjectOption,
    QuestionSetContent,
    RubricCriterion,
)
from edudash.assessments.questions import Question, QuestionType, TRUE_FALSE_OPTIONS


class ScoringShape(enum.Enum):
    """Where an assessment's points come from."""
    POINTS = "points"
    RUBRIC = "rubric"
    MILESTONES = "milestones"


SEED_MILESTONE_WEEKS = (2, 4, 6)


@dataclass(frozen=True)
class AssessmentTypePolicy:
    """Rules and defaults for one assessment type."""

    assessment_type: AssessmentType
    label: str
    allowed_question_types: FrozenSet[QuestionType]
    scoring_shape: ScoringShape
    default_question_type: QuestionType
    default_question_points: float
    show_duration: bool
    show_attempts: bool
    show_deadline: bool
    default_duration: Optional[int]
    default_attempts: int

    @property
    def takes_questions(self) -> bool:
        """Whether authors write free-form questions for this type."""
        return self.scoring_shape is ScoringShape.POINTS

    def allows(self, question_type: QuestionType) -> bool:
        return question_type in self.allowed_question_types

    def default_question(self) -> Question:
        """A blank question of the type's default kind."""
        return blank_question(self.default_question_type, self.default_question_points)

    def default_content(self) -> AssessmentContent:
        """Fresh content for a new assessment, or one just switched to this type."""
        if self.scoring_shape is ScoringShape.RUBRIC:
            return ProjectContent(
                project_options=[ProjectOption()],
                rubric=[RubricCriterion.default()],
            )
        if self.scoring_shape is ScoringShape.MILESTONES:
            return CapstoneContent(
                milestones=[CapstoneMilestone(due_week=week) for week in SEED_MILESTONE_WEEKS],
                rubric=[RubricCriterion.default()],
            )
        return QuestionSetContent(questions=[self.default_question()])

    def flags(self) -> Dict[str, bool]:
        """Which settings apply to this type."""
        return {
            "show_duration": self.show_duration,
            "show_attempts": self.show_attempts,
            "show_deadline": self.show_deadline,
        }


def blank_question(question_type: QuestionType, points: float) -> Question:
    """
    Build an empty question of the given type.

    Multiple choice starts with four empty options and the first marked
    correct; true/false starts with True marked correct.
    """
    if question_type is QuestionType.MULTIPLE_CHOICE:
        return Question(
            question_text="", type=question_type, points=points,
            options=["", "", "", ""], correct_answer="0", explanation=""
        )
    if question_type is QuestionType.TRUE_FALSE:
        return Question(
            question_text="", type=question_type, points=points,
            options=list(TRUE_FALSE_OPTIONS), correct_answer="True", explanation=""
        )
    if question_type in (QuestionType.SHORT_ANSWER, QuestionType.ESSAY):
        return Question(
            question_text="", type=question_type, points=points,
            correct_answer="", explanation=""
        )
    return Question(question_text="", type=question_type, points=points)


POLICIES: Dict[AssessmentType, AssessmentTypePolicy] = {
    AssessmentType.QUIZ: AssessmentTypePolicy(
        assessment_type=AssessmentType.QUIZ,
        label="Quiz",
        allowed_question_types=frozenset({QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE}),
        scoring_shape=ScoringShape.POINTS,
        default_question_type=QuestionType.MULTIPLE_CHOICE,
        default_question_points=5,
        show_duration=True,
        show_attempts=True,
        show_deadline=False,
        default_duration=60,
        default_attempts=2,
    ),
    AssessmentType.ASSIGNMENT: AssessmentTypePolicy(
        assessment_type=AssessmentType.ASSIGNMENT,
        label="Assignment",
        allowed_question_types=frozenset({
            QuestionType.SHORT_ANSWER, QuestionType.ESSAY, QuestionType.MULTIPLE_CHOICE
        }),
        scoring_shape=ScoringShape.POINTS,
        default_question_type=QuestionType.SHORT_ANSWER,
        default_question_points=10,
        show_duration=False,
        show_attempts=False,
        show_deadline=True,
        default_duration=None,
        default_attempts=1,
    ),
    AssessmentType.PROJECT: AssessmentTypePolicy(
        assessment_type=AssessmentType.PROJECT,
        label="Project",
        allowed_question_types=frozenset(),
        scoring_shape=ScoringShape.RUBRIC,
        default_question_type=QuestionType.CODING,
        default_question_points=0,
        show_duration=False,
        show_attempts=False,
        show_deadline=True,
        default_duration=None,
        default_attempts=1,
    ),
    AssessmentType.CAPSTONE: AssessmentTypePolicy(
        assessment_type=AssessmentType.CAPSTONE,
        label="Capstone",
        allowed_question_types=frozenset(),
        scoring_shape=ScoringShape.MILESTONES,
        default_question_type=QuestionType.ESSAY,
        default_question_points=0,
        show_duration=False,
        show_attempts=False,
        show_deadline=True,
        default_duration=None,
        default_attempts=1,
    ),
}


def get_policy(assessment_type) -> AssessmentTypePolicy:
    """Look up the policy for an assessment type (enum or its value)."""
    return POLICIES[AssessmentType.parse(assessment_type)]
