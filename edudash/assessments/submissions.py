"""
Submission & Attempt Tracker

A submission records one learner attempt at an assessment. It moves
through ``draft -> submitted -> graded``; only non-draft submissions
count toward the attempt limit. Every function here takes snapshots and
returns a new snapshot, leaving its inputs untouched.
"""

import enum
import uuid
import datetime
from dataclasses import dataclass, field, fields, replace
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from edudash.assessments.models import Assessment
from edudash.common.error_handling import (
    AlreadyPassed,
    AssessmentUnavailable,
    AttemptLimitExceeded,
    AttemptPending,
    IncompleteSubmission,
    InvariantViolation,
    ValidationError,
)
from edudash.common.serialization import SerializableMixin, parse_datetime, serialize, utcnow


class SubmissionStatus(enum.Enum):
    """Lifecycle states of a submission."""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    GRADED = "graded"


@dataclass
class Answer(SerializableMixin):
    """A learner's answer to the question at ``question_index``."""

    __serializable_fields__ = ["question_index", "answer"]
    __optional_fields__ = ["answer"]

    question_index: int
    answer: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.question_index, bool) or not isinstance(self.question_index, int):
            raise ValidationError(
                f"Question index must be an integer, got {self.question_index!r}",
                field="question_index"
            )
        if self.answer is not None and not isinstance(self.answer, str):
            self.answer = str(self.answer)

    @property
    def is_present(self) -> bool:
        """Whether the answer has any non-whitespace text."""
        return bool(self.answer and self.answer.strip())


AnswersInput = Union[Sequence[Union[Answer, Mapping[str, Any]]], Mapping[int, Any]]


def coerce_answers(answers: Optional[AnswersInput]) -> List[Answer]:
    """
    Normalize caller-supplied answers into Answer objects.

    Accepts Answer objects, ``{"question_index", "answer"}`` mappings, or a
    single mapping of question index to answer text.
    """
    if not answers:
        return []
    try:
        if isinstance(answers, Mapping):
            return [Answer(int(index), value) for index, value in answers.items()]
        return [a if isinstance(a, Answer) else Answer.from_dict(a) for a in answers]
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Malformed answers: {e}", field="answers", cause=e)


@dataclass
class Submission:
    """
    One learner attempt at one assessment.

    Attributes:
        assessment_id: Assessment being attempted
        student_id: Learner who owns the attempt
        attempt_number: 1-based attempt counter per (student, assessment)
        assessment_version: Version of the assessment the attempt was started on
        status: Lifecycle state
        answers: One entry per answered question, ordered by question index
        score: Total score once graded
        percentage: Rounded percentage of total points once graded
        passed: Whether the percentage reaches the passing score
        feedback: Instructor feedback
        item_scores: Score per question (quiz/assignment), rubric criterion
            (project) or milestone (capstone)
        practice: Attempt started in practice mode after passing
    """

    assessment_id: str
    student_id: str
    attempt_number: int
    assessment_version: int = 1
    status: SubmissionStatus = SubmissionStatus.DRAFT
    answers: List[Answer] = field(default_factory=list)
    score: Optional[float] = None
    percentage: Optional[int] = None
    passed: Optional[bool] = None
    feedback: Optional[str] = None
    item_scores: Dict[int, float] = field(default_factory=dict)
    practice: bool = False
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    started_at: datetime.datetime = field(default_factory=utcnow)
    submitted_at: Optional[datetime.datetime] = None
    graded_at: Optional[datetime.datetime] = None

    def __post_init__(self):
        if not isinstance(self.status, SubmissionStatus):
            self.status = SubmissionStatus(self.status)
        self.answers = coerce_answers(self.answers)
        self.item_scores = {int(k): v for k, v in self.item_scores.items()}
        self.started_at = parse_datetime(self.started_at)
        self.submitted_at = parse_datetime(self.submitted_at)
        self.graded_at = parse_datetime(self.graded_at)

    @property
    def is_draft(self) -> bool:
        return self.status is SubmissionStatus.DRAFT

    @property
    def counts_as_attempt(self) -> bool:
        return self.status is not SubmissionStatus.DRAFT

    def answer_for(self, question_index: int) -> Optional[str]:
        for answer in self.answers:
            if answer.question_index == question_index:
                return answer.answer
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: serialize(getattr(self, f.name)) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Submission':
        return cls(**data)


def completed_attempts(submissions: Iterable[Submission]) -> List[Submission]:
    """Non-draft submissions ordered by attempt number."""
    return sorted(
        (s for s in submissions if s.counts_as_attempt),
        key=lambda s: s.attempt_number
    )


def latest_completed(submissions: Iterable[Submission]) -> Optional[Submission]:
    completed = completed_attempts(submissions)
    return completed[-1] if completed else None


def passing_submission(submissions: Iterable[Submission]) -> Optional[Submission]:
    """The first graded submission that passed, if any."""
    for submission in completed_attempts(submissions):
        if submission.status is SubmissionStatus.GRADED and submission.passed:
            return submission
    return None


def percentage_of(score: float, total_points: float) -> int:
    """
    Percentage of total points, rounded half up.

    An assessment worth no points yields 0.
    """
    if not total_points:
        return 0
    ratio = Decimal(str(score)) * 100 / Decimal(str(total_points))
    return int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def check_available(assessment: Assessment, now: Optional[datetime.datetime] = None) -> None:
    """
    Raises:
        AssessmentUnavailable: If the assessment is unpublished or outside
            its start/end window
    """
    now = now or utcnow()
    if not assessment.is_published:
        raise AssessmentUnavailable(assessment.id, "not published")
    if assessment.start_date and now < assessment.start_date:
        raise AssessmentUnavailable(assessment.id, "not open yet")
    if assessment.end_date and now > assessment.end_date:
        raise AssessmentUnavailable(assessment.id, "closed")


def start_attempt(
    assessment: Assessment,
    submissions: Sequence[Submission],
    student_id: str,
    practice: bool = False,
    now: Optional[datetime.datetime] = None
) -> Submission:
    """
    Open an attempt for a learner.

    If the learner already has a draft it is returned instead of a new one.

    Args:
        assessment: The assessment to attempt
        submissions: The learner's existing submissions for this assessment
        student_id: The learner
        practice: Allow an attempt after passing (the attempt limit still applies)
        now: Current time, for the availability window

    Returns:
        The open draft submission

    Raises:
        AssessmentUnavailable: Unpublished or outside its window
        AlreadyPassed: A graded attempt passed and practice mode is off
        AttemptLimitExceeded: All allowed attempts are used
        AttemptPending: The latest attempt is still awaiting grading
    """
    check_available(assessment, now)

    own = [s for s in submissions if s.student_id == student_id and s.assessment_id == assessment.id]
    for submission in own:
        if submission.is_draft:
            return submission

    passed = passing_submission(own)
    if passed is not None and not practice:
        raise AlreadyPassed(assessment.id, student_id, passed.id)

    completed = completed_attempts(own)
    if len(completed) >= assessment.attempts:
        raise AttemptLimitExceeded(assessment.id, student_id, assessment.attempts)

    if completed and completed[-1].status is SubmissionStatus.SUBMITTED:
        raise AttemptPending(completed[-1].id)

    return Submission(
        assessment_id=assessment.id,
        student_id=student_id,
        attempt_number=max((s.attempt_number for s in own), default=0) + 1,
        assessment_version=assessment.version,
        practice=practice,
        started_at=now or utcnow(),
    )


def _merge_answers(
    assessment: Assessment,
    existing: Sequence[Answer],
    updates: Sequence[Answer]
) -> List[Answer]:
    question_count = len(assessment.gradable_questions())
    seen = set()
    for answer in updates:
        if not 0 <= answer.question_index < question_count:
            raise ValidationError(
                f"No question at index {answer.question_index}; "
                f"the assessment has {question_count}",
                field="answers"
            )
        if answer.question_index in seen:
            raise ValidationError(
                f"Question {answer.question_index} answered more than once",
                field="answers"
            )
        seen.add(answer.question_index)

    merged = {a.question_index: a for a in existing}
    merged.update({a.question_index: a for a in updates})
    return [merged[index] for index in sorted(merged)]


def save_draft_answers(
    submission: Submission,
    assessment: Assessment,
    answers: AnswersInput
) -> Submission:
    """
    Store partial answers on a draft without submitting it.

    Raises:
        InvariantViolation: If the submission is no longer a draft
        ValidationError: If an answer targets a question that does not exist
    """
    if not submission.is_draft:
        raise InvariantViolation(
            f"Submission {submission.id} is {submission.status.value}; only drafts accept answers",
            details={"submission_id": submission.id}
        )
    merged = _merge_answers(assessment, submission.answers, coerce_answers(answers))
    return replace(submission, answers=merged)


def submit(
    submission: Submission,
    assessment: Assessment,
    answers: Optional[AnswersInput] = None,
    now: Optional[datetime.datetime] = None
) -> Submission:
    """
    Submit a draft attempt.

    Answers given here are merged over the draft's saved answers. The
    transition is all-or-nothing: if any question is left without an
    answer nothing changes. Submitting an attempt that is already
    submitted or graded is a no-op.

    Raises:
        IncompleteSubmission: If any question has no answer
        ValidationError: If an answer targets a question that does not exist
    """
    if not submission.is_draft:
        return submission

    merged = _merge_answers(assessment, submission.answers, coerce_answers(answers))
    present = {a.question_index for a in merged if a.is_present}
    missing = [
        index for index in range(len(assessment.gradable_questions()))
        if index not in present
    ]
    if missing:
        raise IncompleteSubmission(submission.id, missing)

    return replace(
        submission,
        answers=merged,
        status=SubmissionStatus.SUBMITTED,
        submitted_at=now or utcnow(),
    )
