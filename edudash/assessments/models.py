"""
Assessment Aggregate

This module defines the authored unit: assessment metadata, its
type-specific content, scoring configuration, and publish state.
"""

import uuid
import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, TypeVar

from edudash.assessments.content import (
    AssessmentContent,
    AssessmentType,
    CapstoneContent,
    CapstoneMilestone,
    ProjectContent,
    ProjectOption,
    QuestionSetContent,
    RubricCriterion,
    content_from_dict,
)
from edudash.assessments.policy import AssessmentTypePolicy, get_policy
from edudash.assessments.questions import Question
from edudash.common.error_handling import InvariantViolation, ValidationError
from edudash.common.serialization import parse_datetime, utcnow

T = TypeVar('T')

# Assessment fields that can be patched without touching the scoring structure
SETTINGS_FIELDS = frozenset({
    "title", "description", "passing_score", "duration", "attempts",
    "is_required_for_completion", "start_date", "end_date",
    "module_id", "lesson_id", "order",
})


def stable_reorder(items: Sequence[T], order_keys: Sequence[int]) -> List[T]:
    """
    Reorder items by an explicit order index per item.

    Items with equal keys keep their original relative position.

    Args:
        items: Items in their current order
        order_keys: One order index per item

    Raises:
        ValidationError: If the number of keys does not match the items
    """
    if len(order_keys) != len(items):
        raise ValidationError(
            f"Expected {len(items)} order indexes, got {len(order_keys)}",
            field="order"
        )
    positions = sorted(range(len(items)), key=lambda i: (order_keys[i], i))
    return [items[i] for i in positions]


def _parse_date_setting(name: str, value: Any) -> Optional[datetime.datetime]:
    try:
        return parse_datetime(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} is not a valid date: {value!r}", field=name, cause=e)


@dataclass
class TypeSwitch:
    """
    Record of an assessment type change.

    Switching type re-initializes the content to the new type's default
    shape; ``discarded`` holds the content that was replaced.
    """
    previous_type: AssessmentType
    new_type: AssessmentType
    discarded: Optional[AssessmentContent] = None

    @property
    def destructive(self) -> bool:
        return self.discarded is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "previous_type": self.previous_type.value,
            "new_type": self.new_type.value,
            "discarded": self.discarded.to_dict() if self.discarded is not None else None,
        }


@dataclass
class Assessment:
    """
    An authored assessment.

    ``content`` is the variant selected by ``type``: a question list for
    quizzes and assignments, project options and a rubric for projects,
    milestones for capstones. ``total_points`` is always computed from the
    content and never stored.
    """

    course_id: str
    title: str
    type: AssessmentType
    content: AssessmentContent
    description: str = ""
    passing_score: int = 70
    duration: Optional[int] = None
    attempts: int = 1
    is_published: bool = False
    is_required_for_completion: bool = True
    start_date: Optional[datetime.datetime] = None
    end_date: Optional[datetime.datetime] = None
    module_id: Optional[str] = None
    lesson_id: Optional[str] = None
    order: int = 0
    version: int = 1
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime.datetime = field(default_factory=utcnow)
    updated_at: datetime.datetime = field(default_factory=utcnow)

    def __post_init__(self):
        self.type = AssessmentType.parse(self.type)

        if isinstance(self.content, dict):
            self.content = content_from_dict(self.type, self.content)
        expected = type(self.policy.default_content())
        if not isinstance(self.content, expected):
            raise ValidationError(
                f"{self.type.value} assessments hold {expected.kind} content, "
                f"not {type(self.content).__name__}",
                field="content"
            )

        self.start_date = _parse_date_setting("start_date", self.start_date)
        self.end_date = _parse_date_setting("end_date", self.end_date)
        self.created_at = parse_datetime(self.created_at)
        self.updated_at = parse_datetime(self.updated_at)
        self._check_settings()

    @classmethod
    def create(
        cls,
        course_id: str,
        title: str,
        type: AssessmentType = AssessmentType.QUIZ,
        content: Optional[AssessmentContent] = None,
        **settings: Any
    ) -> 'Assessment':
        """
        Create a draft assessment, filling unset settings from the type policy.

        Args:
            course_id: Owning course
            title: Assessment title
            type: Assessment type
            content: Initial content; the type's default content when omitted
            **settings: Any of the patchable settings fields

        Returns:
            A new unpublished assessment
        """
        unknown = set(settings) - SETTINGS_FIELDS
        if unknown:
            raise ValidationError(f"Unknown assessment fields: {sorted(unknown)}")
        if not course_id:
            raise ValidationError("An assessment must belong to a course", field="course_id")

        policy = get_policy(type)
        settings.setdefault("duration", policy.default_duration)
        settings.setdefault("attempts", policy.default_attempts)

        return cls(
            course_id=course_id,
            title=title,
            type=policy.assessment_type,
            content=content if content is not None else policy.default_content(),
            **settings
        )

    def _check_settings(self) -> None:
        for name in ("passing_score", "attempts", "duration"):
            value = getattr(self, name)
            if name == "duration" and value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(f"{name} must be a number, got {value!r}", field=name)
        if not 0 <= self.passing_score <= 100:
            raise ValidationError(
                f"Passing score must be between 0 and 100, got {self.passing_score}",
                field="passing_score"
            )
        if self.attempts < 1:
            raise ValidationError(f"At least one attempt must be allowed, got {self.attempts}", field="attempts")
        if self.duration is not None and self.duration < 0:
            raise ValidationError(f"Duration cannot be negative: {self.duration}", field="duration")
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValidationError("Start date must not be after end date", field="end_date")

    def touch(self) -> None:
        self.updated_at = utcnow()

    @property
    def policy(self) -> AssessmentTypePolicy:
        return get_policy(self.type)

    @property
    def total_points(self) -> float:
        return self.content.total_points()

    def gradable_questions(self) -> List[Question]:
        """Questions a learner answers: authored ones, or the synthetic submission question."""
        return self.content.gradable_questions()

    def item_maxima(self) -> List[float]:
        """Maximum score of each item an instructor grades."""
        return self.content.item_maxima()

    # Settings

    def update_settings(self, **changes: Any) -> None:
        """
        Apply metadata and scoring-configuration changes.

        Raises:
            ValidationError: For unknown fields or values that break a
                settings invariant (nothing is applied in that case)
        """
        unknown = set(changes) - SETTINGS_FIELDS
        if unknown:
            raise ValidationError(f"Unknown assessment fields: {sorted(unknown)}")

        previous = {name: getattr(self, name) for name in changes}
        try:
            for name, value in changes.items():
                if name in ("start_date", "end_date"):
                    value = _parse_date_setting(name, value)
                setattr(self, name, value)
            self._check_settings()
        except ValidationError:
            for name, value in previous.items():
                setattr(self, name, value)
            raise
        self.touch()

    # Questions

    def _question_set(self) -> QuestionSetContent:
        if not isinstance(self.content, QuestionSetContent):
            raise ValidationError(f"{self.type.value} assessments do not take free-form questions", field="questions")
        return self.content

    def _check_question_type(self, question: Question) -> None:
        if not self.policy.allows(question.type):
            raise ValidationError(
                f"{question.type.value} questions are not allowed in a {self.type.value}",
                field="questions"
            )

    def add_question(self, question: Question, index: Optional[int] = None) -> None:
        content = self._question_set()
        self._check_question_type(question)
        if index is None:
            content.questions.append(question)
        else:
            content.questions.insert(index, question)
        self.touch()

    def replace_question(self, index: int, question: Question) -> None:
        content = self._question_set()
        self._check_question_type(question)
        _check_index(content.questions, index, "questions")
        content.questions[index] = question
        self.touch()

    def remove_question(self, index: int) -> Question:
        """
        Remove a question.

        Raises:
            InvariantViolation: If this would leave the assessment without questions
        """
        content = self._question_set()
        _check_index(content.questions, index, "questions")
        if len(content.questions) == 1:
            raise InvariantViolation(
                f"A {self.type.value} needs at least one question",
                details={"assessment_id": self.id}
            )
        removed = content.questions.pop(index)
        self.touch()
        return removed

    def set_questions(self, questions: Sequence[Question]) -> None:
        """Replace the whole question list."""
        content = self._question_set()
        if not questions:
            raise InvariantViolation(f"A {self.type.value} needs at least one question")
        for question in questions:
            self._check_question_type(question)
        content.questions = list(questions)
        self.touch()

    def reorder_questions(self, order_keys: Sequence[int]) -> None:
        content = self._question_set()
        content.questions = stable_reorder(content.questions, order_keys)
        self.touch()

    # Project and capstone structure

    def _project(self) -> ProjectContent:
        if not isinstance(self.content, ProjectContent):
            raise ValidationError(f"{self.type.value} assessments have no project options", field="project_options")
        return self.content

    def _capstone(self) -> CapstoneContent:
        if not isinstance(self.content, CapstoneContent):
            raise ValidationError(f"{self.type.value} assessments have no milestones", field="milestones")
        return self.content

    def _rubric(self) -> List[RubricCriterion]:
        if isinstance(self.content, (ProjectContent, CapstoneContent)):
            return self.content.rubric
        raise ValidationError(f"{self.type.value} assessments have no rubric", field="rubric")

    def add_project_option(self, option: Optional[ProjectOption] = None) -> ProjectOption:
        option = option or ProjectOption()
        self._project().project_options.append(option)
        self.touch()
        return option

    def remove_project_option(self, index: int) -> ProjectOption:
        options = self._project().project_options
        _check_index(options, index, "project_options")
        if len(options) == 1:
            raise InvariantViolation("A project needs at least one project option")
        removed = options.pop(index)
        self.touch()
        return removed

    def add_milestone(self, milestone: Optional[CapstoneMilestone] = None) -> CapstoneMilestone:
        milestones = self._capstone().milestones
        # Each new milestone lands two weeks after the previous one
        milestone = milestone or CapstoneMilestone(due_week=min(len(milestones) * 2 + 2, 52))
        milestones.append(milestone)
        self.touch()
        return milestone

    def remove_milestone(self, index: int) -> CapstoneMilestone:
        milestones = self._capstone().milestones
        _check_index(milestones, index, "milestones")
        if len(milestones) == 1:
            raise InvariantViolation("A capstone needs at least one milestone")
        removed = milestones.pop(index)
        self.touch()
        return removed

    def reorder_milestones(self, order_keys: Sequence[int]) -> None:
        content = self._capstone()
        content.milestones = stable_reorder(content.milestones, order_keys)
        self.touch()

    def add_rubric_criterion(self, criterion: Optional[RubricCriterion] = None) -> RubricCriterion:
        criterion = criterion or RubricCriterion.default()
        self._rubric().append(criterion)
        self.touch()
        return criterion

    def remove_rubric_criterion(self, index: int) -> RubricCriterion:
        rubric = self._rubric()
        _check_index(rubric, index, "rubric")
        removed = rubric.pop(index)
        self.touch()
        return removed

    # Whole-content changes

    def replace_content(self, content: AssessmentContent) -> None:
        """
        Replace the content with another of the same variant.

        Raises:
            ValidationError: If the variant does not match the type or a
                question type is not allowed
        """
        if isinstance(content, dict):
            content = content_from_dict(self.type, content)
        if type(content) is not type(self.content):
            raise ValidationError(
                f"{self.type.value} assessments hold {self.content.kind} content",
                field="content"
            )
        if isinstance(content, QuestionSetContent):
            for question in content.questions:
                self._check_question_type(question)
        self.content = content
        self.touch()

    def switch_type(self, new_type: AssessmentType) -> TypeSwitch:
        """
        Change the assessment type.

        This is destructive: the content is re-initialized to the new
        type's default shape and the type's duration and attempt defaults
        are applied. The returned record holds the discarded content.
        """
        new_type = AssessmentType.parse(new_type)
        previous_type = self.type
        if new_type is previous_type:
            return TypeSwitch(previous_type, new_type)

        policy = get_policy(new_type)
        discarded = self.content
        self.type = new_type
        self.content = policy.default_content()
        self.duration = policy.default_duration
        self.attempts = policy.default_attempts
        self.touch()
        return TypeSwitch(previous_type, new_type, discarded)

    # Serialization

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the assessment to dictionary format.

        ``total_points`` is included for readers but ignored by from_dict.
        """
        return {
            "id": self.id,
            "course_id": self.course_id,
            "module_id": self.module_id,
            "lesson_id": self.lesson_id,
            "title": self.title,
            "description": self.description,
            "type": self.type.value,
            "content": self.content.to_dict(),
            "total_points": self.total_points,
            "passing_score": self.passing_score,
            "duration": self.duration,
            "attempts": self.attempts,
            "is_published": self.is_published,
            "is_required_for_completion": self.is_required_for_completion,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "order": self.order,
            "version": self.version,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Assessment':
        """
        Create an assessment from dictionary data.

        Args:
            data: Dictionary produced by to_dict

        Returns:
            New assessment instance
        """
        data = dict(data)
        data.pop("total_points", None)
        return cls(**data)


def _check_index(items: Sequence[Any], index: int, field_name: str) -> None:
    if not 0 <= index < len(items):
        raise ValidationError(f"No {field_name} entry at index {index}", field=field_name)
