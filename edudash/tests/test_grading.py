"""
Tests for the grading engine.

This module focuses on:
1. Automatic scoring of objective questions
2. Human grading of free-form, project and capstone work
3. Percentage and pass/fail derivation
"""

import pytest

from edudash.assessments.grading import GradingEngine
from edudash.assessments.submissions import SubmissionStatus, start_attempt, submit
from edudash.common.error_handling import InvariantViolation, ValidationError
from edudash.tests.factories import (
    STUDENT_ID,
    correct_answers,
    make_assignment,
    make_capstone,
    make_project,
    make_quiz,
    mc_question,
    short_answer,
)


@pytest.fixture
def engine():
    return GradingEngine()


def submitted(assessment, answers=None):
    draft = start_attempt(assessment, [], STUDENT_ID)
    return submit(draft, assessment, answers if answers is not None else correct_answers(assessment))


class TestAutoGrade:
    def test_all_correct_quiz_is_graded(self, engine):
        quiz = make_quiz(points=(5, 5, 10))
        graded = engine.auto_grade(quiz, submitted(quiz))

        assert graded.status is SubmissionStatus.GRADED
        assert graded.score == 20
        assert graded.percentage == 100
        assert graded.passed is True
        assert graded.item_scores == {0: 5, 1: 5, 2: 10}
        assert graded.graded_at is not None

    def test_wrong_answers_score_zero(self, engine):
        quiz = make_quiz(points=(5, 5, 10))
        graded = engine.auto_grade(quiz, submitted(quiz, {0: "4", 1: "3", 2: "6"}))

        assert graded.score == 5
        assert graded.percentage == 25
        assert graded.passed is False

    def test_index_form_of_correct_answer_is_accepted(self, engine):
        quiz = make_quiz(points=(5,))
        graded = engine.auto_grade(quiz, submitted(quiz, {0: "1"}))
        assert graded.score == 5

    def test_free_form_questions_wait_for_instructor(self, engine):
        assignment = make_assignment([mc_question(points=10), short_answer(points=10)])
        result = engine.auto_grade(assignment, submitted(assignment))

        assert result.status is SubmissionStatus.SUBMITTED
        assert result.score is None
        assert result.percentage is None
        assert result.item_scores == {0: 10}

    def test_project_work_is_never_auto_graded(self, engine):
        project = make_project()
        result = engine.auto_grade(project, submitted(project, {0: "https://github.com/me/todo"}))

        assert result.status is SubmissionStatus.SUBMITTED
        assert result.item_scores == {}

    def test_drafts_cannot_be_graded(self, engine):
        quiz = make_quiz()
        draft = start_attempt(quiz, [], STUDENT_ID)

        with pytest.raises(InvariantViolation):
            engine.auto_grade(quiz, draft)
        with pytest.raises(InvariantViolation):
            engine.grade(quiz, draft, {0: 5})


class TestHumanGrading:
    def test_fourteen_of_twenty_passes_at_seventy(self, engine):
        assignment = make_assignment([short_answer(points=10), short_answer(points=10)], passing_score=70)
        graded = engine.grade(assignment, submitted(assignment), {0: 7, 1: 7}, feedback="Good work")

        assert graded.status is SubmissionStatus.GRADED
        assert graded.score == 14
        assert graded.percentage == 70
        assert graded.passed is True
        assert graded.feedback == "Good work"

    def test_fourteen_of_twenty_fails_at_seventy_one(self, engine):
        assignment = make_assignment([short_answer(points=10), short_answer(points=10)], passing_score=71)
        graded = engine.grade(assignment, submitted(assignment), {0: 7, 1: 7})

        assert graded.percentage == 70
        assert graded.passed is False

    def test_overrides_merge_with_auto_scores(self, engine):
        assignment = make_assignment([mc_question(points=10), short_answer(points=10)])
        pending = engine.auto_grade(assignment, submitted(assignment))

        graded = engine.grade(assignment, pending, {1: 4})
        assert graded.item_scores == {0: 10, 1: 4}
        assert graded.score == 14

    def test_every_question_needs_a_score(self, engine):
        assignment = make_assignment([short_answer(points=10), short_answer(points=10)])
        with pytest.raises(InvariantViolation) as exc_info:
            engine.grade(assignment, submitted(assignment), {0: 7})
        assert exc_info.value.details["unscored"] == [1]

    def test_override_may_replace_an_auto_score(self, engine):
        quiz = make_quiz(points=(5, 5))
        graded = engine.auto_grade(quiz, submitted(quiz, {0: "3", 1: "4"}))

        regraded = engine.grade(quiz, graded, {0: 5})
        assert regraded.score == 10
        assert regraded.percentage == 100

    def test_override_out_of_range(self, engine):
        assignment = make_assignment([short_answer(points=10), short_answer(points=10)])
        pending = submitted(assignment)

        with pytest.raises(ValidationError):
            engine.grade(assignment, pending, {0: 11, 1: 5})
        with pytest.raises(ValidationError):
            engine.grade(assignment, pending, {0: -1, 1: 5})
        with pytest.raises(ValidationError):
            engine.grade(assignment, pending, {5: 1})

    def test_string_indexes_are_accepted(self, engine):
        assignment = make_assignment([short_answer(points=10)])
        graded = engine.grade(assignment, submitted(assignment), {"0": 8})
        assert graded.item_scores == {0: 8}

    def test_feedback_is_kept_on_regrade(self, engine):
        assignment = make_assignment([short_answer(points=10)])
        graded = engine.grade(assignment, submitted(assignment), {0: 5}, feedback="Expand on this")

        regraded = engine.grade(assignment, graded, {0: 6})
        assert regraded.feedback == "Expand on this"
        assert regraded.score == 6


class TestProjectGrading:
    def test_project_score_is_sum_of_rubric_scores(self, engine):
        project = make_project(maxima=(30, 20))
        graded = engine.grade(project, submitted(project), {0: 25, 1: 15})

        assert graded.score == 40
        assert graded.percentage == 80
        assert graded.passed is True

    def test_rubric_score_above_criterion_maximum(self, engine):
        project = make_project(maxima=(30, 20))
        with pytest.raises(ValidationError):
            engine.grade(project, submitted(project), {1: 25})

    def test_project_needs_a_score(self, engine):
        project = make_project()
        with pytest.raises(InvariantViolation):
            engine.grade(project, submitted(project), {})

    def test_capstone_scores_milestones(self, engine):
        capstone = make_capstone(points=(25, 25, 50))
        graded = engine.grade(capstone, submitted(capstone), {0: 20, 1: 20, 2: 25})

        assert graded.score == 65
        assert graded.percentage == 65
        assert graded.passed is False
