"""
Database Records

Assessments and submissions are stored as JSON payloads next to the
columns used for lookups. Assessments are keyed by (id, version) so
earlier versions stay readable after a structural edit.
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String

from edudash.assessments.models import Assessment
from edudash.assessments.submissions import Submission
from edudash.database.base import ModelBase


class AssessmentRecord(ModelBase):
    __tablename__ = "assessments"

    id = Column(String(36), primary_key=True)
    version = Column(Integer, primary_key=True, default=1)
    course_id = Column(String(64), nullable=False, index=True)
    type = Column(String(20), nullable=False)
    is_published = Column(Boolean, nullable=False, default=False)
    order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)
    payload = Column(JSON, nullable=False)

    @classmethod
    def from_assessment(cls, assessment: Assessment) -> 'AssessmentRecord':
        return cls(
            id=assessment.id,
            version=assessment.version,
            course_id=assessment.course_id,
            type=assessment.type.value,
            is_published=assessment.is_published,
            order=assessment.order,
            created_at=assessment.created_at,
            payload=assessment.to_dict(),
        )

    def to_assessment(self) -> Assessment:
        return Assessment.from_dict(self.payload)


class SubmissionRecord(ModelBase):
    __tablename__ = "submissions"

    id = Column(String(36), primary_key=True)
    assessment_id = Column(String(36), nullable=False, index=True)
    student_id = Column(String(64), nullable=False, index=True)
    attempt_number = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False)
    payload = Column(JSON, nullable=False)

    @classmethod
    def from_submission(cls, submission: Submission) -> 'SubmissionRecord':
        return cls(
            id=submission.id,
            assessment_id=submission.assessment_id,
            student_id=submission.student_id,
            attempt_number=submission.attempt_number,
            status=submission.status.value,
            payload=submission.to_dict(),
        )

    def to_submission(self) -> Submission:
        return Submission.from_dict(self.payload)
