"""
Assessment Repositories

This module defines the persistence contracts used by the assessment
service and in-memory implementations for development and testing.
Repositories hand out snapshots: callers receive fresh objects and
changes only take effect when saved.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from edudash.assessments.models import Assessment
from edudash.assessments.submissions import Submission
from edudash.common.error_handling import DatabaseError
from edudash.common.logger import app_logger

logger = app_logger.getChild("repositories")


class AssessmentRepository(ABC):
    """
    Abstract repository for assessments.

    Assessments are stored per version; structural edits of a published
    assessment with submissions create a new version while the older
    ones stay readable.
    """

    @abstractmethod
    async def get(self, assessment_id: str) -> Optional[Assessment]:
        """
        Retrieve the latest version of an assessment.

        Returns:
            The assessment if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_version(self, assessment_id: str, version: int) -> Optional[Assessment]:
        """Retrieve a specific version of an assessment."""
        pass

    @abstractmethod
    async def save(self, assessment: Assessment) -> Assessment:
        """
        Save an assessment, replacing the stored copy of the same version.

        Returns:
            The saved assessment
        """
        pass

    @abstractmethod
    async def save_new_version(self, assessment: Assessment) -> Assessment:
        """
        Store an assessment as a new version, keeping the previous ones.

        Raises:
            DatabaseError: If the version is not newer than the stored ones
        """
        pass

    @abstractmethod
    async def delete(self, assessment_id: str) -> bool:
        """
        Delete every version of an assessment.

        Returns:
            True if anything was deleted
        """
        pass

    @abstractmethod
    async def list_by_course(self, course_id: str) -> List[Assessment]:
        """Latest versions of a course's assessments in course order."""
        pass


class SubmissionRepository(ABC):
    """Abstract repository for learner submissions."""

    @abstractmethod
    async def get(self, submission_id: str) -> Optional[Submission]:
        pass

    @abstractmethod
    async def save(self, submission: Submission) -> Submission:
        pass

    @abstractmethod
    async def list_for(self, assessment_id: str, student_id: str) -> List[Submission]:
        """
        A learner's submissions for one assessment.

        Returns:
            Submissions ordered by attempt number
        """
        pass

    @abstractmethod
    async def list_for_assessment(self, assessment_id: str) -> List[Submission]:
        pass

    @abstractmethod
    async def list_for_student(self, student_id: str) -> List[Submission]:
        """
        Every submission a learner has made.

        Returns:
            Submissions ordered by assessment, then attempt number
        """
        pass

    @abstractmethod
    async def delete_for_assessment(self, assessment_id: str) -> int:
        """
        Delete every submission for an assessment.

        Returns:
            Number of submissions deleted
        """
        pass


class MemoryAssessmentRepository(AssessmentRepository):
    """
    In-memory implementation of the AssessmentRepository.

    Assessments are kept as dictionaries so stored state never aliases
    objects held by callers.
    """

    def __init__(self, initial_data: Optional[List[Assessment]] = None):
        self._versions: Dict[str, Dict[int, Dict[str, Any]]] = {}
        self._lock = asyncio.Lock()

        if initial_data:
            for assessment in initial_data:
                self._versions.setdefault(assessment.id, {})[assessment.version] = assessment.to_dict()

    async def get(self, assessment_id: str) -> Optional[Assessment]:
        versions = self._versions.get(assessment_id)
        if not versions:
            return None
        return Assessment.from_dict(versions[max(versions)])

    async def get_version(self, assessment_id: str, version: int) -> Optional[Assessment]:
        data = self._versions.get(assessment_id, {}).get(version)
        return Assessment.from_dict(data) if data else None

    async def save(self, assessment: Assessment) -> Assessment:
        async with self._lock:
            self._versions.setdefault(assessment.id, {})[assessment.version] = assessment.to_dict()
        return assessment

    async def save_new_version(self, assessment: Assessment) -> Assessment:
        async with self._lock:
            versions = self._versions.setdefault(assessment.id, {})
            if versions and assessment.version <= max(versions):
                raise DatabaseError(
                    f"Assessment {assessment.id} already has version {max(versions)}",
                    details={"assessment_id": assessment.id, "version": assessment.version}
                )
            versions[assessment.version] = assessment.to_dict()
        logger.info(f"Stored assessment {assessment.id} version {assessment.version}")
        return assessment

    async def delete(self, assessment_id: str) -> bool:
        async with self._lock:
            return self._versions.pop(assessment_id, None) is not None

    async def list_by_course(self, course_id: str) -> List[Assessment]:
        latest = [
            Assessment.from_dict(versions[max(versions)])
            for versions in self._versions.values()
            if versions
        ]
        return sorted(
            (a for a in latest if a.course_id == course_id),
            key=lambda a: (a.order, a.created_at)
        )


class MemorySubmissionRepository(SubmissionRepository):
    """In-memory implementation of the SubmissionRepository."""

    def __init__(self, initial_data: Optional[List[Submission]] = None):
        self._submissions: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

        if initial_data:
            for submission in initial_data:
                self._submissions[submission.id] = submission.to_dict()

    async def get(self, submission_id: str) -> Optional[Submission]:
        data = self._submissions.get(submission_id)
        return Submission.from_dict(data) if data else None

    async def save(self, submission: Submission) -> Submission:
        async with self._lock:
            self._submissions[submission.id] = submission.to_dict()
        return submission

    async def list_for(self, assessment_id: str, student_id: str) -> List[Submission]:
        return sorted(
            (
                Submission.from_dict(data) for data in self._submissions.values()
                if data["assessment_id"] == assessment_id and data["student_id"] == student_id
            ),
            key=lambda s: s.attempt_number
        )

    async def list_for_assessment(self, assessment_id: str) -> List[Submission]:
        return sorted(
            (
                Submission.from_dict(data) for data in self._submissions.values()
                if data["assessment_id"] == assessment_id
            ),
            key=lambda s: (s.student_id, s.attempt_number)
        )

    async def list_for_student(self, student_id: str) -> List[Submission]:
        return sorted(
            (
                Submission.from_dict(data) for data in self._submissions.values()
                if data["student_id"] == student_id
            ),
            key=lambda s: (s.assessment_id, s.attempt_number)
        )

    async def delete_for_assessment(self, assessment_id: str) -> int:
        async with self._lock:
            doomed = [
                submission_id for submission_id, data in self._submissions.items()
                if data["assessment_id"] == assessment_id
            ]
            for submission_id in doomed:
                del self._submissions[submission_id]
        return len(doomed)
