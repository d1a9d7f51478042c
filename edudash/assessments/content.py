"""
Assessment Content

The scoring structure of an assessment depends on its type. Quizzes and
assignments hold an ordered question list, projects hold project options
and a rubric, and capstones hold dated milestones. Each shape is its own
class; an assessment carries exactly one of them, selected by its type.
"""

import enum
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Union

from edudash.assessments.questions import Question, QuestionType
from edudash.common.error_handling import ValidationError
from edudash.common.serialization import SerializableMixin, serialize


class AssessmentType(enum.Enum):
    """Types of assessment supported by the system."""
    QUIZ = "quiz"
    ASSIGNMENT = "assignment"
    PROJECT = "project"
    CAPSTONE = "capstone"

    @classmethod
    def parse(cls, value) -> 'AssessmentType':
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(f"Invalid assessment type: {value}", field="type")


class ProjectDifficulty(enum.Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class SubmissionChannel(enum.Enum):
    """How a learner hands in project work."""
    GITHUB = "github"
    URL = "url"
    FILE = "file"
    ALL = "all"


def _new_id() -> str:
    return str(uuid.uuid4())


def _check_points(value, field_name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field_name} must be a number, got {value!r}", field=field_name)
    if value < 0:
        raise ValidationError(f"{field_name} cannot be negative: {value}", field=field_name)


def _parse_enum(enum_cls, value, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Invalid {field_name}: {value}", field=field_name)


@dataclass
class RubricLevel(SerializableMixin):
    """Descriptive anchor for human grading of one rubric criterion."""

    __serializable_fields__ = ["label", "points", "description"]
    __optional_fields__ = ["description"]

    label: str
    points: float
    description: str = ""

    def __post_init__(self):
        _check_points(self.points, "points")


DEFAULT_RUBRIC_LEVELS = (
    ("Excellent", 25),
    ("Good", 18),
    ("Satisfactory", 12),
    ("Needs Work", 5),
)


@dataclass
class RubricCriterion(SerializableMixin):
    """One criterion of a project rubric."""

    __serializable_fields__ = ["id", "criterion", "description", "max_points", "levels"]
    __optional_fields__ = ["id", "criterion", "description", "max_points", "levels"]

    criterion: str = ""
    description: str = ""
    max_points: float = 25
    levels: List[RubricLevel] = field(default_factory=list)
    id: str = field(default_factory=_new_id)

    def __post_init__(self):
        _check_points(self.max_points, "max_points")
        self.levels = [
            level if isinstance(level, RubricLevel) else RubricLevel.from_dict(level)
            for level in self.levels
        ]
        for level in self.levels:
            if level.points > self.max_points:
                raise ValidationError(
                    f"Rubric level {level.label!r} is worth {level.points}, "
                    f"more than the criterion maximum {self.max_points}",
                    field="levels"
                )

    @classmethod
    def default(cls) -> 'RubricCriterion':
        """A blank criterion with the standard four grading anchors."""
        return cls(levels=[RubricLevel(label, points) for label, points in DEFAULT_RUBRIC_LEVELS])


@dataclass
class ProjectOption(SerializableMixin):
    """A project a learner may choose to build."""

    __serializable_fields__ = ["id", "title", "description", "difficulty", "tech_stack", "deliverables"]
    __optional_fields__ = ["id", "title", "description", "difficulty", "tech_stack", "deliverables"]

    title: str = ""
    description: str = ""
    difficulty: ProjectDifficulty = ProjectDifficulty.INTERMEDIATE
    tech_stack: List[str] = field(default_factory=list)
    deliverables: List[str] = field(default_factory=lambda: [""])
    id: str = field(default_factory=_new_id)

    def __post_init__(self):
        self.difficulty = _parse_enum(ProjectDifficulty, self.difficulty, "difficulty")


MIN_DUE_WEEK = 1
MAX_DUE_WEEK = 52


@dataclass
class CapstoneMilestone(SerializableMixin):
    """A dated, points-bearing checkpoint within a capstone."""

    __serializable_fields__ = ["id", "title", "description", "due_week", "points", "deliverables"]
    __optional_fields__ = ["id", "title", "description", "due_week", "points", "deliverables"]

    title: str = ""
    description: str = ""
    due_week: int = 2
    points: float = 25
    deliverables: List[str] = field(default_factory=lambda: [""])
    id: str = field(default_factory=_new_id)

    def __post_init__(self):
        _check_points(self.points, "points")
        if not MIN_DUE_WEEK <= self.due_week <= MAX_DUE_WEEK:
            raise ValidationError(
                f"Milestone due week must be between {MIN_DUE_WEEK} and {MAX_DUE_WEEK}, got {self.due_week}",
                field="due_week"
            )


@dataclass
class QuestionSetContent:
    """Ordered question list of a quiz or assignment."""

    kind: ClassVar[str] = "questions"

    questions: List[Question] = field(default_factory=list)

    def __post_init__(self):
        self.questions = [
            q if isinstance(q, Question) else Question.from_dict(q)
            for q in self.questions
        ]

    def total_points(self) -> float:
        return sum(q.points for q in self.questions)

    def gradable_questions(self) -> List[Question]:
        return list(self.questions)

    def item_maxima(self) -> List[float]:
        """Maximum score of each independently graded item."""
        return [q.points for q in self.questions]

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "questions": serialize(self.questions)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'QuestionSetContent':
        return cls(questions=data.get("questions", []))


@dataclass
class _DeliverableContent(ABC):
    """Shared behaviour of project-like content graded against a rubric or milestones."""

    submission_title: ClassVar[str] = "Submission"

    @abstractmethod
    def total_points(self) -> float:
        pass

    def gradable_questions(self) -> List[Question]:
        """
        The single synthetic question that carries the total points and
        routes the learner's deliverable (repo, URL, or file) into the
        submission.
        """
        return [Question(
            question_text=self.submission_title,
            type=QuestionType.ESSAY,
            points=self.total_points(),
            explanation="Structured project metadata"
        )]


@dataclass
class ProjectContent(_DeliverableContent):
    """Project options and the rubric they are graded against."""

    kind: ClassVar[str] = "project"
    submission_title: ClassVar[str] = "Project Submission"

    project_options: List[ProjectOption] = field(default_factory=list)
    rubric: List[RubricCriterion] = field(default_factory=list)
    allow_custom_project: bool = False
    submission_type: SubmissionChannel = SubmissionChannel.GITHUB

    def __post_init__(self):
        self.project_options = [
            o if isinstance(o, ProjectOption) else ProjectOption.from_dict(o)
            for o in self.project_options
        ]
        self.rubric = [
            r if isinstance(r, RubricCriterion) else RubricCriterion.from_dict(r)
            for r in self.rubric
        ]
        self.submission_type = _parse_enum(SubmissionChannel, self.submission_type, "submission_type")

    def total_points(self) -> float:
        return sum(r.max_points for r in self.rubric)

    def item_maxima(self) -> List[float]:
        return [r.max_points for r in self.rubric]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "project_options": serialize(self.project_options),
            "rubric": serialize(self.rubric),
            "allow_custom_project": self.allow_custom_project,
            "submission_type": self.submission_type.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProjectContent':
        return cls(
            project_options=data.get("project_options", []),
            rubric=data.get("rubric", []),
            allow_custom_project=data.get("allow_custom_project", False),
            submission_type=data.get("submission_type", SubmissionChannel.GITHUB),
        )


@dataclass
class CapstoneContent(_DeliverableContent):
    """Milestones of a capstone; the rubric is descriptive only."""

    kind: ClassVar[str] = "capstone"
    submission_title: ClassVar[str] = "Capstone Submission"

    milestones: List[CapstoneMilestone] = field(default_factory=list)
    rubric: List[RubricCriterion] = field(default_factory=list)
    capstone_brief: str = ""
    presentation_required: bool = False
    submission_type: SubmissionChannel = SubmissionChannel.GITHUB

    def __post_init__(self):
        self.milestones = [
            m if isinstance(m, CapstoneMilestone) else CapstoneMilestone.from_dict(m)
            for m in self.milestones
        ]
        self.rubric = [
            r if isinstance(r, RubricCriterion) else RubricCriterion.from_dict(r)
            for r in self.rubric
        ]
        self.submission_type = _parse_enum(SubmissionChannel, self.submission_type, "submission_type")

    def total_points(self) -> float:
        return sum(m.points for m in self.milestones)

    def item_maxima(self) -> List[float]:
        return [m.points for m in self.milestones]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "milestones": serialize(self.milestones),
            "rubric": serialize(self.rubric),
            "capstone_brief": self.capstone_brief,
            "presentation_required": self.presentation_required,
            "submission_type": self.submission_type.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CapstoneContent':
        return cls(
            milestones=data.get("milestones", []),
            rubric=data.get("rubric", []),
            capstone_brief=data.get("capstone_brief", ""),
            presentation_required=data.get("presentation_required", False),
            submission_type=data.get("submission_type", SubmissionChannel.GITHUB),
        )


AssessmentContent = Union[QuestionSetContent, ProjectContent, CapstoneContent]

CONTENT_FOR_TYPE = {
    AssessmentType.QUIZ: QuestionSetContent,
    AssessmentType.ASSIGNMENT: QuestionSetContent,
    AssessmentType.PROJECT: ProjectContent,
    AssessmentType.CAPSTONE: CapstoneContent,
}


def content_from_dict(assessment_type: AssessmentType, data: Dict[str, Any]) -> AssessmentContent:
    """
    Build the content variant an assessment type requires.

    Args:
        assessment_type: Type that selects the variant
        data: Content fields; a ``kind`` entry, if present, must match

    Raises:
        ValidationError: If ``kind`` names another variant
    """
    content_cls = CONTENT_FOR_TYPE[assessment_type]
    kind = data.get("kind", content_cls.kind)
    if kind != content_cls.kind:
        raise ValidationError(
            f"{assessment_type.value} assessments hold {content_cls.kind} content, not {kind}",
            field="content"
        )
    try:
        return content_cls.from_dict(data)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Malformed {content_cls.kind} content: {e}", field="content", cause=e)
