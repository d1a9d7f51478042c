"""
Assessment Service

This module exposes the assessment lifecycle to callers: authoring,
course ordering, publishing, attempts, submission, grading and question
generation. The
service loads snapshots from the repositories, runs the domain rules and
saves the resulting snapshots. Domain errors come back as failed
OperationResults, never as exceptions.
"""

import datetime
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from edudash.assessments.content import AssessmentType
from edudash.assessments.generation import (
    MIN_GENERATED,
    QuestionContentGenerator,
    accept_generated_questions,
)
from edudash.assessments.grading import GradingEngine
from edudash.assessments.models import Assessment, TypeSwitch
from edudash.assessments.publishing import check_publishable, publish, toggle_publish, unpublish
from edudash.assessments.questions import QuestionType
from edudash.assessments.repositories import AssessmentRepository, SubmissionRepository
from edudash.assessments.retake import AttemptStatus, attempt_status
from edudash.assessments import submissions as tracker
from edudash.assessments.submissions import AnswersInput, Submission, SubmissionStatus
from edudash.common.error_handling import (
    AssessmentNotFoundError,
    EduDashError,
    GenerationError,
    InvariantViolation,
    NotGradable,
    StructuralEditBlocked,
    SubmissionNotFoundError,
    ValidationError,
    log_error,
)
from edudash.common.logger import LoggerAdapter, app_logger, log_execution_time
from edudash.common.results import OperationResult
from edudash.common.serialization import utcnow
from edudash.config import settings as app_settings

logger = app_logger.getChild("assessments.service")

GENERATION_MODES = ("replace", "append")


def _parse_status(value: Any) -> Optional[SubmissionStatus]:
    if value is None or isinstance(value, SubmissionStatus):
        return value
    try:
        return SubmissionStatus(value)
    except ValueError as e:
        raise ValidationError(f"Invalid submission status: {value}", field="status", cause=e)


class AssessmentService:
    """
    Service for the assessment lifecycle.

    Every public method returns an OperationResult carrying the new
    snapshot on success or the typed domain error on failure.
    """

    def __init__(
        self,
        assessments: AssessmentRepository,
        submissions: SubmissionRepository,
        generator: Optional[QuestionContentGenerator] = None,
        grading_engine: Optional[GradingEngine] = None,
        structural_edit_policy: Optional[str] = None,
        max_generated_questions: Optional[int] = None,
        default_passing_score: Optional[int] = None,
        clock: Optional[Callable[[], datetime.datetime]] = None
    ):
        """
        Initialize the service.

        Args:
            assessments: Assessment persistence
            submissions: Submission persistence
            generator: Question-content generator; generation fails without one
            grading_engine: Grading engine, a default one if omitted
            structural_edit_policy: ``version`` or ``block``; from settings if omitted
            max_generated_questions: Upper bound on generated questions per call
            default_passing_score: Passing score for new assessments
            clock: Source of the current time
        """
        self.assessments = assessments
        self.submissions = submissions
        self.generator = generator
        self.grading = grading_engine or GradingEngine()
        self.structural_edit_policy = structural_edit_policy or app_settings.STRUCTURAL_EDIT_POLICY
        self.max_generated_questions = max_generated_questions or app_settings.MAX_GENERATED_QUESTIONS
        self.default_passing_score = (
            default_passing_score if default_passing_score is not None
            else app_settings.DEFAULT_PASSING_SCORE
        )
        self._clock = clock or utcnow
        self.log = LoggerAdapter(logger)

    async def _run(
        self,
        operation: str,
        action: Callable[[], Awaitable[Any]],
        **context: Any
    ) -> OperationResult:
        try:
            value = await action()
        except EduDashError as e:
            log_error(e, context={"operation": operation, **context}, log=logger)
            return OperationResult.failure(e)
        if isinstance(value, OperationResult):
            return value
        return OperationResult.success(value)

    # Loading

    async def _load_assessment(self, assessment_id: str, version: Optional[int] = None) -> Assessment:
        if version is None:
            assessment = await self.assessments.get(assessment_id)
        else:
            assessment = await self.assessments.get_version(assessment_id, version)
        if assessment is None:
            raise AssessmentNotFoundError(assessment_id, version)
        return assessment

    async def _load_submission(self, submission_id: str) -> Submission:
        submission = await self.submissions.get(submission_id)
        if submission is None:
            raise SubmissionNotFoundError(submission_id)
        return submission

    async def _completed_count(self, assessment_id: str, version: int) -> int:
        return sum(
            1 for s in await self.submissions.list_for_assessment(assessment_id)
            if s.counts_as_attempt and s.assessment_version == version
        )

    async def _save_structural_edit(self, assessment: Assessment, was_published: bool) -> Assessment:
        """
        Persist a content or type change.

        A published assessment must stay publishable. If learners already
        submitted attempts against the current version, the edit either
        becomes a new version or is blocked, depending on the structural
        edit policy. This also holds for an assessment unpublished after
        attempts were made.
        """
        if was_published and assessment.is_published:
            problems = check_publishable(assessment)
            if problems:
                raise NotGradable(assessment.id, problems)

        count = await self._completed_count(assessment.id, assessment.version)
        if not count:
            return await self.assessments.save(assessment)

        if self.structural_edit_policy == "block":
            raise StructuralEditBlocked(assessment.id, count)

        assessment.version += 1
        self.log.with_context(assessment_id=assessment.id).info(
            f"Structural edit with {count} submitted attempt(s); "
            f"creating version {assessment.version}"
        )
        return await self.assessments.save_new_version(assessment)

    # Authoring

    @log_execution_time(logger)
    async def create_assessment(
        self,
        course_id: str,
        title: str,
        type: Any = AssessmentType.QUIZ,
        content: Optional[Any] = None,
        **fields: Any
    ) -> OperationResult[Assessment]:
        """
        Create a draft assessment.

        Args:
            course_id: Owning course
            title: Assessment title
            type: Assessment type (enum or value)
            content: Initial content object or dictionary; type default if omitted
            **fields: Settings such as passing_score, attempts or dates

        Returns:
            Result holding the created assessment
        """
        async def action():
            fields.setdefault("passing_score", self.default_passing_score)
            assessment = Assessment.create(course_id, title, type, content, **fields)
            await self.assessments.save(assessment)
            self.log.with_context(assessment_id=assessment.id, course_id=course_id).info(
                f"Created {assessment.type.value} '{assessment.title}'"
            )
            return assessment

        return await self._run("create_assessment", action, course_id=course_id)

    async def get_assessment(self, assessment_id: str, version: Optional[int] = None) -> OperationResult[Assessment]:
        return await self._run(
            "get_assessment",
            lambda: self._load_assessment(assessment_id, version),
            assessment_id=assessment_id
        )

    async def list_course_assessments(self, course_id: str) -> OperationResult[List[Assessment]]:
        return await self._run(
            "list_course_assessments",
            lambda: self.assessments.list_by_course(course_id),
            course_id=course_id
        )

    @log_execution_time(logger)
    async def update_assessment(
        self,
        assessment_id: str,
        patch: Mapping[str, Any],
        discard_content: bool = False
    ) -> OperationResult[Assessment]:
        """
        Apply a patch to an assessment.

        ``type`` and ``content`` entries are structural; everything else is
        a settings change. Changing the type discards the current content,
        so it must be confirmed with ``discard_content``. The result's meta
        carries the type switch record when the type changed.

        Args:
            assessment_id: Assessment to change
            patch: Fields to change
            discard_content: Confirms a destructive type change

        Returns:
            Result holding the updated assessment
        """
        async def action():
            assessment = await self._load_assessment(assessment_id)
            changes = dict(patch)
            new_type = changes.pop("type", None)
            new_content = changes.pop("content", None)
            was_published = assessment.is_published

            switch: Optional[TypeSwitch] = None
            if new_type is not None and AssessmentType.parse(new_type) is not assessment.type:
                if not discard_content:
                    raise InvariantViolation(
                        f"Changing the type of assessment {assessment.id} discards its content; "
                        "confirm with discard_content",
                        details={"assessment_id": assessment.id, "type": assessment.type.value}
                    )
                switch = assessment.switch_type(new_type)

            if new_content is not None:
                assessment.replace_content(new_content)

            if changes:
                assessment.update_settings(**changes)

            if switch is not None or new_content is not None:
                saved = await self._save_structural_edit(assessment, was_published)
            else:
                saved = await self.assessments.save(assessment)

            log = self.log.with_context(assessment_id=assessment.id)
            if switch is not None:
                log.warning(
                    f"Switched type {switch.previous_type.value} -> {switch.new_type.value}; "
                    "previous content discarded"
                )
                return OperationResult.success(saved, type_switch=switch.to_dict())
            log.info("Updated assessment")
            return saved

        return await self._run("update_assessment", action, assessment_id=assessment_id)

    async def delete_assessment(self, assessment_id: str) -> OperationResult[Dict[str, Any]]:
        """Delete an assessment and every submission made against it."""
        async def action():
            await self._load_assessment(assessment_id)
            removed = await self.submissions.delete_for_assessment(assessment_id)
            await self.assessments.delete(assessment_id)
            self.log.with_context(assessment_id=assessment_id).info(
                f"Deleted assessment and {removed} submission(s)"
            )
            return {"assessment_id": assessment_id, "submissions_deleted": removed}

        return await self._run("delete_assessment", action, assessment_id=assessment_id)

    # Publishing

    async def _transition(self, operation: str, assessment_id: str, change) -> OperationResult[Assessment]:
        async def action():
            assessment = change(await self._load_assessment(assessment_id))
            await self.assessments.save(assessment)
            state = "published" if assessment.is_published else "draft"
            self.log.with_context(assessment_id=assessment_id).info(f"Assessment is now {state}")
            return assessment

        return await self._run(operation, action, assessment_id=assessment_id)

    async def publish(self, assessment_id: str) -> OperationResult[Assessment]:
        return await self._transition("publish", assessment_id, publish)

    async def unpublish(self, assessment_id: str) -> OperationResult[Assessment]:
        return await self._transition("unpublish", assessment_id, unpublish)

    async def toggle_publish(self, assessment_id: str) -> OperationResult[Assessment]:
        return await self._transition("toggle_publish", assessment_id, toggle_publish)

    # Attempts

    @log_execution_time(logger)
    async def start_attempt(
        self,
        assessment_id: str,
        student_id: str,
        practice: bool = False
    ) -> OperationResult[Submission]:
        """
        Open an attempt, or return the learner's open draft.

        Returns:
            Result holding the draft submission
        """
        async def action():
            assessment = await self._load_assessment(assessment_id)
            history = await self.submissions.list_for(assessment_id, student_id)
            submission = tracker.start_attempt(
                assessment, history, student_id, practice=practice, now=self._clock()
            )
            if any(s.id == submission.id for s in history):
                return submission
            await self.submissions.save(submission)
            self.log.with_context(
                assessment_id=assessment_id, student_id=student_id, submission_id=submission.id
            ).info(f"Started attempt {submission.attempt_number}")
            return submission

        return await self._run("start_attempt", action, assessment_id=assessment_id, student_id=student_id)

    async def get_submission(self, submission_id: str) -> OperationResult[Submission]:
        return await self._run(
            "get_submission",
            lambda: self._load_submission(submission_id),
            submission_id=submission_id
        )

    async def save_draft_answers(self, submission_id: str, answers: AnswersInput) -> OperationResult[Submission]:
        async def action():
            submission = await self._load_submission(submission_id)
            assessment = await self._load_assessment(submission.assessment_id, submission.assessment_version)
            updated = tracker.save_draft_answers(submission, assessment, answers)
            return await self.submissions.save(updated)

        return await self._run("save_draft_answers", action, submission_id=submission_id)

    @log_execution_time(logger)
    async def submit_attempt(
        self,
        submission_id: str,
        answers: Optional[AnswersInput] = None
    ) -> OperationResult[Submission]:
        """
        Submit an attempt and auto-grade its objective questions.

        Submitting an attempt that was already submitted returns it unchanged.

        Args:
            submission_id: The draft to submit
            answers: Final answers, merged over the saved draft answers

        Returns:
            Result holding the submitted or graded submission
        """
        async def action():
            submission = await self._load_submission(submission_id)
            if not submission.is_draft:
                return submission

            assessment = await self._load_assessment(submission.assessment_id, submission.assessment_version)
            now = self._clock()
            submitted = tracker.submit(submission, assessment, answers, now=now)
            graded = self.grading.auto_grade(assessment, submitted, now=now)
            await self.submissions.save(graded)
            self.log.with_context(submission_id=submission_id, assessment_id=assessment.id).info(
                f"Attempt {graded.attempt_number} {graded.status.value}"
            )
            return graded

        return await self._run("submit_attempt", action, submission_id=submission_id)

    @log_execution_time(logger)
    async def grade_attempt(
        self,
        submission_id: str,
        score_overrides: Optional[Mapping[Any, float]] = None,
        feedback: Optional[str] = None
    ) -> OperationResult[Submission]:
        """
        Grade an attempt with instructor scores.

        Args:
            submission_id: A submitted or graded attempt
            score_overrides: Score per question, rubric criterion or milestone index
            feedback: Instructor feedback

        Returns:
            Result holding the graded submission
        """
        async def action():
            submission = await self._load_submission(submission_id)
            assessment = await self._load_assessment(submission.assessment_id, submission.assessment_version)
            graded = self.grading.grade(
                assessment, submission, score_overrides, feedback, now=self._clock()
            )
            await self.submissions.save(graded)
            self.log.with_context(submission_id=submission_id, assessment_id=assessment.id).info(
                f"Graded {graded.score}/{assessment.total_points} ({graded.percentage}%), "
                f"passed={graded.passed}"
            )
            return graded

        return await self._run("grade_attempt", action, submission_id=submission_id)

    async def attempt_status(self, assessment_id: str, student_id: str) -> OperationResult[AttemptStatus]:
        async def action():
            assessment = await self._load_assessment(assessment_id)
            history = await self.submissions.list_for(assessment_id, student_id)
            return attempt_status(assessment, history, student_id)

        return await self._run("attempt_status", action, assessment_id=assessment_id, student_id=student_id)

    async def list_submissions(
        self,
        assessment_id: str,
        status: Optional[Any] = None
    ) -> OperationResult[List[Submission]]:
        """
        List the submissions made against an assessment, for grading.

        Args:
            assessment_id: Assessment whose submissions are listed
            status: Only submissions in this state (enum or value)

        Returns:
            Result holding submissions ordered by learner, then attempt number
        """
        async def action():
            wanted = _parse_status(status)
            await self._load_assessment(assessment_id)
            found = await self.submissions.list_for_assessment(assessment_id)
            if wanted is None:
                return found
            return [s for s in found if s.status is wanted]

        return await self._run("list_submissions", action, assessment_id=assessment_id)

    async def list_student_submissions(
        self,
        student_id: str,
        assessment_id: Optional[str] = None
    ) -> OperationResult[List[Submission]]:
        """A learner's submission history, optionally for one assessment."""
        async def action():
            if assessment_id is None:
                return await self.submissions.list_for_student(student_id)
            await self._load_assessment(assessment_id)
            return await self.submissions.list_for(assessment_id, student_id)

        return await self._run("list_student_submissions", action, student_id=student_id)

    # Course ordering

    async def reorder_assessments(
        self,
        course_id: str,
        orders: Mapping[str, int]
    ) -> OperationResult[List[Assessment]]:
        """
        Set the position of assessments within a course.

        Either every order is applied or none is.

        Args:
            course_id: Course owning the assessments
            orders: New order index per assessment id

        Returns:
            Result holding the course's assessments in their new order
        """
        async def action():
            current = {a.id: a for a in await self.assessments.list_by_course(course_id)}
            unknown = sorted(set(orders) - set(current))
            if unknown:
                raise ValidationError(
                    f"Assessments not in course {course_id}: {unknown}",
                    field="orders",
                    details={"assessment_ids": unknown}
                )
            for assessment_id, order in orders.items():
                if isinstance(order, bool) or not isinstance(order, int):
                    raise ValidationError(
                        f"Order of assessment {assessment_id} must be an integer, got {order!r}",
                        field="orders"
                    )

            for assessment_id, order in orders.items():
                assessment = current[assessment_id]
                if assessment.order != order:
                    assessment.update_settings(order=order)
                    await self.assessments.save(assessment)

            self.log.with_context(course_id=course_id).info(f"Reordered {len(orders)} assessment(s)")
            return await self.assessments.list_by_course(course_id)

        return await self._run("reorder_assessments", action, course_id=course_id)

    # Generation

    @log_execution_time(logger)
    async def generate_questions(
        self,
        assessment_id: str,
        topic: str,
        count: int = 5,
        mode: str = "append"
    ) -> OperationResult[Assessment]:
        """
        Add generated questions to a quiz or assignment.

        Generator output is revalidated; rejected items are reported in
        the result's meta under ``rejected``.

        Args:
            assessment_id: Target assessment
            topic: Topic handed to the generator
            count: Number of questions to request
            mode: ``replace`` the current questions or ``append`` to them

        Returns:
            Result holding the updated assessment
        """
        async def action():
            if mode not in GENERATION_MODES:
                raise ValidationError(f"Invalid generation mode: {mode}", field="mode")
            if not MIN_GENERATED <= count <= self.max_generated_questions:
                raise ValidationError(
                    f"Question count must be between {MIN_GENERATED} and {self.max_generated_questions}",
                    field="count"
                )
            if not topic or not topic.strip():
                raise ValidationError("A topic is required", field="topic")

            assessment = await self._load_assessment(assessment_id)
            allowed = [t for t in QuestionType if assessment.policy.allows(t)]
            if not allowed:
                raise ValidationError(
                    f"{assessment.type.value} assessments do not take generated questions",
                    field="type"
                )
            if self.generator is None:
                raise GenerationError("No question generator is configured")

            items = await self.generator.generate_questions(topic, count, allowed)
            outcome = accept_generated_questions(items, allowed)
            if not outcome.accepted:
                raise GenerationError(
                    "The generator produced no valid questions",
                    details={"rejected": [r.to_dict() for r in outcome.rejected]}
                )

            was_published = assessment.is_published
            if mode == "replace":
                assessment.set_questions(outcome.accepted)
            else:
                for question in outcome.accepted:
                    assessment.add_question(question)
            saved = await self._save_structural_edit(assessment, was_published)

            self.log.with_context(assessment_id=assessment_id).info(
                f"Accepted {len(outcome.accepted)} generated question(s) on '{topic}' ({mode})"
            )
            return OperationResult.success(
                saved,
                accepted=len(outcome.accepted),
                rejected=[r.to_dict() for r in outcome.rejected]
            )

        return await self._run("generate_questions", action, assessment_id=assessment_id)
