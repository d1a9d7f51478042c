"""
SQL Repositories

SQLAlchemy-backed implementations of the assessment and submission
repositories.
"""

from typing import Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from edudash.assessments.models import Assessment
from edudash.assessments.repositories import AssessmentRepository, SubmissionRepository
from edudash.assessments.submissions import Submission
from edudash.common.error_handling import DatabaseError
from edudash.common.logger import get_logger
from edudash.database.models import AssessmentRecord, SubmissionRecord
from edudash.database.session import get_session_factory

logger = get_logger(__name__)


class SqlAssessmentRepository(AssessmentRepository):
    """Repository for assessments stored one row per version."""

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        """
        Initialize the repository with a session factory.

        Args:
            session_factory: Factory for async sessions; the initialized
                engine's factory if omitted
        """
        self._session_factory = session_factory or get_session_factory()

    async def get(self, assessment_id: str) -> Optional[Assessment]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(AssessmentRecord)
                    .where(AssessmentRecord.id == assessment_id)
                    .order_by(AssessmentRecord.version.desc())
                    .limit(1)
                )
                record = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Database error loading assessment {assessment_id}: {e}")
            raise DatabaseError(f"Could not load assessment {assessment_id}", cause=e)
        return record.to_assessment() if record else None

    async def get_version(self, assessment_id: str, version: int) -> Optional[Assessment]:
        try:
            async with self._session_factory() as session:
                record = await session.get(AssessmentRecord, (assessment_id, version))
        except SQLAlchemyError as e:
            logger.error(f"Database error loading assessment {assessment_id} v{version}: {e}")
            raise DatabaseError(f"Could not load assessment {assessment_id}", cause=e)
        return record.to_assessment() if record else None

    async def save(self, assessment: Assessment) -> Assessment:
        try:
            async with self._session_factory() as session:
                await session.merge(AssessmentRecord.from_assessment(assessment))
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Database error saving assessment {assessment.id}: {e}")
            raise DatabaseError(f"Could not save assessment {assessment.id}", cause=e)
        return assessment

    async def save_new_version(self, assessment: Assessment) -> Assessment:
        try:
            async with self._session_factory() as session:
                latest = await session.scalar(
                    select(func.max(AssessmentRecord.version))
                    .where(AssessmentRecord.id == assessment.id)
                )
                if latest is not None and assessment.version <= latest:
                    raise DatabaseError(
                        f"Assessment {assessment.id} already has version {latest}",
                        details={"assessment_id": assessment.id, "version": assessment.version}
                    )
                session.add(AssessmentRecord.from_assessment(assessment))
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Database error versioning assessment {assessment.id}: {e}")
            raise DatabaseError(f"Could not save assessment {assessment.id}", cause=e)
        logger.info(f"Stored assessment {assessment.id} version {assessment.version}")
        return assessment

    async def delete(self, assessment_id: str) -> bool:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    delete(AssessmentRecord).where(AssessmentRecord.id == assessment_id)
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Database error deleting assessment {assessment_id}: {e}")
            raise DatabaseError(f"Could not delete assessment {assessment_id}", cause=e)
        return result.rowcount > 0

    async def list_by_course(self, course_id: str) -> List[Assessment]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(AssessmentRecord).where(AssessmentRecord.course_id == course_id)
                )
                records = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Database error listing assessments for course {course_id}: {e}")
            raise DatabaseError(f"Could not list assessments for course {course_id}", cause=e)

        latest: Dict[str, AssessmentRecord] = {}
        for record in records:
            if record.id not in latest or record.version > latest[record.id].version:
                latest[record.id] = record
        return sorted(
            (record.to_assessment() for record in latest.values()),
            key=lambda a: (a.order, a.created_at)
        )


class SqlSubmissionRepository(SubmissionRepository):
    """Repository for learner submissions."""

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self._session_factory = session_factory or get_session_factory()

    async def get(self, submission_id: str) -> Optional[Submission]:
        try:
            async with self._session_factory() as session:
                record = await session.get(SubmissionRecord, submission_id)
        except SQLAlchemyError as e:
            logger.error(f"Database error loading submission {submission_id}: {e}")
            raise DatabaseError(f"Could not load submission {submission_id}", cause=e)
        return record.to_submission() if record else None

    async def save(self, submission: Submission) -> Submission:
        try:
            async with self._session_factory() as session:
                await session.merge(SubmissionRecord.from_submission(submission))
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Database error saving submission {submission.id}: {e}")
            raise DatabaseError(f"Could not save submission {submission.id}", cause=e)
        return submission

    async def _list(self, *criteria, order_by=None) -> List[Submission]:
        order_by = order_by if order_by is not None else SubmissionRecord.student_id
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(SubmissionRecord)
                    .where(*criteria)
                    .order_by(order_by, SubmissionRecord.attempt_number)
                )
                records = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Database error listing submissions: {e}")
            raise DatabaseError("Could not list submissions", cause=e)
        return [record.to_submission() for record in records]

    async def list_for(self, assessment_id: str, student_id: str) -> List[Submission]:
        return await self._list(
            SubmissionRecord.assessment_id == assessment_id,
            SubmissionRecord.student_id == student_id,
        )

    async def list_for_assessment(self, assessment_id: str) -> List[Submission]:
        return await self._list(SubmissionRecord.assessment_id == assessment_id)

    async def list_for_student(self, student_id: str) -> List[Submission]:
        return await self._list(
            SubmissionRecord.student_id == student_id,
            order_by=SubmissionRecord.assessment_id,
        )

    async def delete_for_assessment(self, assessment_id: str) -> int:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    delete(SubmissionRecord).where(SubmissionRecord.assessment_id == assessment_id)
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Database error deleting submissions of {assessment_id}: {e}")
            raise DatabaseError(f"Could not delete submissions of assessment {assessment_id}", cause=e)
        return result.rowcount
