"""
Retake Eligibility Rule

Pure queries over a learner's submission history. Nothing here starts
an attempt; see ``submissions.start_attempt`` for the transition.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from edudash.assessments.models import Assessment
from edudash.assessments.submissions import (
    Submission,
    SubmissionStatus,
    completed_attempts,
    passing_submission,
)


def can_retake(assessment: Assessment, submissions: Sequence[Submission]) -> bool:
    """
    Whether the learner may take the assessment again.

    True iff the latest non-draft attempt is graded and failed, and fewer
    non-draft attempts exist than the assessment allows.
    """
    completed = completed_attempts(submissions)
    if not completed:
        return False
    latest = completed[-1]
    return (
        latest.status is SubmissionStatus.GRADED
        and latest.passed is False
        and len(completed) < assessment.attempts
    )


@dataclass
class AttemptStatus:
    """A learner's standing on one assessment."""

    assessment_id: str
    student_id: str
    attempts_allowed: int
    attempts_used: int
    latest: Optional[Submission]
    draft: Optional[Submission]
    best_percentage: Optional[int]
    passed: bool
    can_retake: bool

    @property
    def attempts_remaining(self) -> int:
        return max(self.attempts_allowed - self.attempts_used, 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assessment_id": self.assessment_id,
            "student_id": self.student_id,
            "attempts_allowed": self.attempts_allowed,
            "attempts_used": self.attempts_used,
            "attempts_remaining": self.attempts_remaining,
            "latest": self.latest.to_dict() if self.latest else None,
            "draft": self.draft.to_dict() if self.draft else None,
            "best_percentage": self.best_percentage,
            "passed": self.passed,
            "can_retake": self.can_retake,
        }


def attempt_status(
    assessment: Assessment,
    submissions: Sequence[Submission],
    student_id: str
) -> AttemptStatus:
    own = [s for s in submissions if s.student_id == student_id]
    completed = completed_attempts(own)
    graded = [s.percentage for s in completed if s.percentage is not None]
    return AttemptStatus(
        assessment_id=assessment.id,
        student_id=student_id,
        attempts_allowed=assessment.attempts,
        attempts_used=len(completed),
        latest=completed[-1] if completed else None,
        draft=next((s for s in own if s.is_draft), None),
        best_percentage=max(graded) if graded else None,
        passed=passing_submission(own) is not None,
        can_retake=can_retake(assessment, own),
    )
