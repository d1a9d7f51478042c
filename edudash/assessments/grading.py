"""
Grading Engine

Maps a submission's answers against the assessment's answer key, rubric
or milestones to produce item scores, a total, a percentage and a
pass/fail verdict.
"""

import datetime
from dataclasses import replace
from typing import Any, Dict, Mapping, Optional

from edudash.assessments.content import QuestionSetContent
from edudash.assessments.models import Assessment
from edudash.assessments.questions import Question
from edudash.assessments.submissions import Submission, SubmissionStatus, percentage_of
from edudash.common.error_handling import InvariantViolation, ValidationError
from edudash.common.logger import app_logger
from edudash.common.serialization import utcnow

logger = app_logger.getChild("grading")


class GradingEngine:
    """
    Scores submissions.

    Objective questions are scored automatically. Free-form questions and
    all project and capstone work need scores from an instructor through
    ``grade``.
    """

    def score_question(self, question: Question, answer: Optional[str]) -> Optional[float]:
        """
        Score one answer.

        Returns:
            The question's points for a correct objective answer, 0 for a
            wrong or missing one, None for questions graded by hand
        """
        if not question.is_objective:
            return None
        if answer is not None and question.is_correct(answer):
            return question.points
        return 0

    def auto_grade(
        self,
        assessment: Assessment,
        submission: Submission,
        now: Optional[datetime.datetime] = None
    ) -> Submission:
        """
        Score every objective question of a submitted attempt.

        The attempt becomes ``graded`` only if every item could be scored
        automatically; otherwise it stays ``submitted`` with the objective
        scores filled in, awaiting an instructor.

        Raises:
            InvariantViolation: If the submission is still a draft
        """
        self._check_gradable(submission)
        if submission.status is SubmissionStatus.GRADED:
            return submission

        if not isinstance(assessment.content, QuestionSetContent):
            return submission

        item_scores: Dict[int, float] = {}
        for index, question in enumerate(assessment.gradable_questions()):
            score = self.score_question(question, submission.answer_for(index))
            if score is not None:
                item_scores[index] = score

        if len(item_scores) < len(assessment.gradable_questions()):
            logger.debug(
                f"Submission {submission.id} needs manual grading for "
                f"{len(assessment.gradable_questions()) - len(item_scores)} question(s)"
            )
            return replace(submission, item_scores=item_scores)

        return self._finalize(assessment, submission, item_scores, submission.feedback, now)

    def grade(
        self,
        assessment: Assessment,
        submission: Submission,
        score_overrides: Optional[Mapping[Any, float]] = None,
        feedback: Optional[str] = None,
        now: Optional[datetime.datetime] = None
    ) -> Submission:
        """
        Grade a submission with instructor-assigned scores.

        For quizzes and assignments the overrides are merged over the
        automatic scores and every question must end up with a score. For
        projects and capstones the overrides score rubric criteria or
        milestones and their sum is the total. A graded submission may be
        graded again.

        Args:
            assessment: The assessment version the submission was started on
            submission: A submitted or graded attempt
            score_overrides: Score per item index
            feedback: Instructor feedback; keeps the existing feedback if None

        Returns:
            The graded submission

        Raises:
            InvariantViolation: If the submission is a draft or items are left unscored
            ValidationError: If an override targets a missing item or is out of range
        """
        self._check_gradable(submission)
        overrides = self._check_overrides(assessment, score_overrides or {})

        item_scores = dict(submission.item_scores)
        if isinstance(assessment.content, QuestionSetContent):
            for index, question in enumerate(assessment.gradable_questions()):
                if index not in item_scores and index not in overrides:
                    score = self.score_question(question, submission.answer_for(index))
                    if score is not None:
                        item_scores[index] = score
            item_scores.update(overrides)

            unscored = [
                index for index in range(len(assessment.gradable_questions()))
                if index not in item_scores
            ]
            if unscored:
                raise InvariantViolation(
                    f"Submission {submission.id} has unscored questions: {unscored}",
                    details={"submission_id": submission.id, "unscored": unscored}
                )
        else:
            item_scores.update(overrides)
            if not item_scores:
                raise InvariantViolation(
                    f"Submission {submission.id} needs at least one {assessment.content.kind} score",
                    details={"submission_id": submission.id}
                )
            total = sum(item_scores.values())
            if total > assessment.total_points:
                raise ValidationError(
                    f"Score {total} exceeds the assessment total of {assessment.total_points}",
                    field="score_overrides"
                )

        feedback = feedback if feedback is not None else submission.feedback
        return self._finalize(assessment, submission, item_scores, feedback, now)

    def _check_gradable(self, submission: Submission) -> None:
        if submission.is_draft:
            raise InvariantViolation(
                f"Submission {submission.id} is a draft and cannot be graded",
                details={"submission_id": submission.id}
            )

    def _check_overrides(self, assessment: Assessment, overrides: Mapping[Any, float]) -> Dict[int, float]:
        maxima = assessment.item_maxima()
        checked = {}
        for key, score in overrides.items():
            try:
                index = int(key)
            except (TypeError, ValueError):
                raise ValidationError(f"Invalid item index: {key!r}", field="score_overrides")
            if not 0 <= index < len(maxima):
                raise ValidationError(f"No gradable item at index {index}", field="score_overrides")
            if isinstance(score, bool) or not isinstance(score, (int, float)):
                raise ValidationError(f"Score for item {index} must be a number", field="score_overrides")
            if not 0 <= score <= maxima[index]:
                raise ValidationError(
                    f"Score {score} for item {index} is outside 0..{maxima[index]}",
                    field="score_overrides"
                )
            checked[index] = score
        return checked

    def _finalize(
        self,
        assessment: Assessment,
        submission: Submission,
        item_scores: Dict[int, float],
        feedback: Optional[str],
        now: Optional[datetime.datetime]
    ) -> Submission:
        score = sum(item_scores.values())
        percentage = percentage_of(score, assessment.total_points)
        return replace(
            submission,
            status=SubmissionStatus.GRADED,
            item_scores=item_scores,
            score=score,
            percentage=percentage,
            passed=percentage >= assessment.passing_score,
            feedback=feedback,
            graded_at=now or utcnow(),
        )
