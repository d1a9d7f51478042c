"""
Tests for the Assessment aggregate.

This module focuses on:
1. Derived total points for every content variant
2. Structural edits and the invariants they must keep
3. Stable reordering
4. Destructive type switches
"""

import datetime

import pytest

from edudash.assessments.content import (
    AssessmentType,
    CapstoneMilestone,
    ProjectContent,
    ProjectOption,
    QuestionSetContent,
    RubricCriterion,
    RubricLevel,
    _DeliverableContent,
)
from edudash.assessments.models import Assessment, stable_reorder
from edudash.common.error_handling import InvariantViolation, ValidationError
from edudash.tests.factories import (
    COURSE_ID,
    make_capstone,
    make_project,
    make_quiz,
    mc_question,
    short_answer,
    tf_question,
)


class TestTotalPoints:
    def test_quiz_total_is_sum_of_question_points(self):
        assert make_quiz(points=(5, 5, 10)).total_points == 20

    def test_total_follows_question_changes(self):
        quiz = make_quiz(points=(5, 5, 10), published=False)
        quiz.add_question(mc_question(points=7))
        assert quiz.total_points == 27

        quiz.remove_question(0)
        assert quiz.total_points == 22

        quiz.content.questions[0].points = 1
        assert quiz.total_points == 18

    def test_project_total_is_sum_of_rubric_maxima(self):
        project = make_project(maxima=(30, 20), published=False)
        assert project.total_points == 50

        project.add_rubric_criterion(RubricCriterion(criterion="Docs", max_points=10))
        assert project.total_points == 60

    def test_capstone_total_is_sum_of_milestone_points(self):
        capstone = make_capstone(points=(25, 25, 50), published=False)
        assert capstone.total_points == 100

        capstone.remove_milestone(2)
        assert capstone.total_points == 50

    def test_total_points_in_dict_is_recomputed(self):
        quiz = make_quiz(points=(5, 5), published=False)
        data = quiz.to_dict()
        data["total_points"] = 999

        assert Assessment.from_dict(data).total_points == 10


class TestCreation:
    def test_quiz_defaults(self):
        quiz = Assessment.create(COURSE_ID, "Quiz")
        assert quiz.type is AssessmentType.QUIZ
        assert quiz.duration == 60
        assert quiz.attempts == 2
        assert quiz.passing_score == 70
        assert not quiz.is_published
        assert quiz.is_required_for_completion
        assert quiz.version == 1

    def test_other_type_defaults(self):
        project = Assessment.create(COURSE_ID, "Project", AssessmentType.PROJECT)
        assert project.duration is None
        assert project.attempts == 1
        assert isinstance(project.content, ProjectContent)

    def test_passing_score_bounds(self):
        with pytest.raises(ValidationError):
            Assessment.create(COURSE_ID, "Quiz", passing_score=101)
        with pytest.raises(ValidationError):
            Assessment.create(COURSE_ID, "Quiz", passing_score=-1)

    def test_attempts_must_be_positive(self):
        with pytest.raises(ValidationError):
            Assessment.create(COURSE_ID, "Quiz", attempts=0)

    def test_start_must_not_follow_end(self):
        with pytest.raises(ValidationError):
            Assessment.create(
                COURSE_ID, "Quiz",
                start_date="2026-03-02T00:00:00+00:00",
                end_date="2026-03-01T00:00:00+00:00",
            )

    def test_content_must_match_type(self):
        with pytest.raises(ValidationError):
            Assessment.create(COURSE_ID, "Quiz", AssessmentType.QUIZ, ProjectContent())

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            Assessment.create(COURSE_ID, "Exam", "exam")

    def test_unknown_fields_rejected(self):
        with pytest.raises(ValidationError):
            Assessment.create(COURSE_ID, "Quiz", colour="red")

    def test_naive_dates_are_taken_as_utc(self):
        quiz = Assessment.create(COURSE_ID, "Quiz", start_date=datetime.datetime(2026, 1, 1))
        assert quiz.start_date.tzinfo is datetime.timezone.utc


class TestStructuralEdits:
    def test_quiz_rejects_disallowed_question_type(self):
        quiz = make_quiz(published=False)
        with pytest.raises(ValidationError):
            quiz.add_question(short_answer())

    def test_assignment_accepts_multiple_choice(self):
        assignment = Assessment.create(COURSE_ID, "Homework", AssessmentType.ASSIGNMENT)
        assignment.add_question(mc_question())
        assert len(assignment.content.questions) == 2

    def test_removing_last_question_is_an_invariant_violation(self):
        quiz = make_quiz(points=(5,), published=False)
        with pytest.raises(InvariantViolation):
            quiz.remove_question(0)
        assert len(quiz.content.questions) == 1

    def test_removing_last_project_option_is_an_invariant_violation(self):
        project = make_project(published=False)
        with pytest.raises(InvariantViolation):
            project.remove_project_option(0)

        project.add_project_option(ProjectOption(title="Chat app"))
        project.remove_project_option(0)
        assert [o.title for o in project.content.project_options] == ["Chat app"]

    def test_removing_last_milestone_is_an_invariant_violation(self):
        capstone = make_capstone(points=(50,), published=False)
        with pytest.raises(InvariantViolation):
            capstone.remove_milestone(0)

    def test_question_operations_need_question_content(self):
        project = make_project(published=False)
        with pytest.raises(ValidationError):
            project.add_question(mc_question())

    def test_index_out_of_range(self):
        quiz = make_quiz(published=False)
        with pytest.raises(ValidationError):
            quiz.replace_question(5, mc_question())

    def test_set_questions_requires_one(self):
        quiz = make_quiz(published=False)
        with pytest.raises(InvariantViolation):
            quiz.set_questions([])

    def test_new_milestone_lands_after_the_last(self):
        capstone = Assessment.create(COURSE_ID, "Capstone", AssessmentType.CAPSTONE)
        milestone = capstone.add_milestone()
        assert milestone.due_week == 8
        assert milestone.points == 25

    def test_rubric_level_cannot_exceed_criterion_maximum(self):
        with pytest.raises(ValidationError):
            RubricCriterion(criterion="Style", max_points=10, levels=[RubricLevel("Excellent", 12)])

    def test_milestone_week_bounds(self):
        with pytest.raises(ValidationError):
            CapstoneMilestone(due_week=53)

    def test_update_settings_is_all_or_nothing(self):
        quiz = make_quiz(published=False)
        with pytest.raises(ValidationError):
            quiz.update_settings(title="Renamed", passing_score=150)
        assert quiz.title == "Arithmetic quiz"
        assert quiz.passing_score == 70

    @pytest.mark.parametrize("changes, field", [
        ({"passing_score": "high"}, "passing_score"),
        ({"attempts": None}, "attempts"),
        ({"attempts": True}, "attempts"),
        ({"duration": "an hour"}, "duration"),
        ({"title": "Renamed", "start_date": "not-a-date"}, "start_date"),
        ({"end_date": 20260301}, "end_date"),
    ])
    def test_wrongly_typed_settings_are_validation_errors(self, changes, field):
        quiz = make_quiz(published=False)

        with pytest.raises(ValidationError) as excinfo:
            quiz.update_settings(**changes)

        assert excinfo.value.field == field
        assert quiz.title == "Arithmetic quiz"
        assert quiz.passing_score == 70
        assert quiz.attempts == 2
        assert quiz.start_date is None
        assert quiz.end_date is None

    def test_malformed_date_on_creation(self):
        with pytest.raises(ValidationError) as excinfo:
            make_quiz(start_date="next tuesday")
        assert excinfo.value.field == "start_date"

    def test_replace_content_keeps_variant(self):
        quiz = make_quiz(published=False)
        quiz.replace_content({"kind": "questions", "questions": [tf_question().to_dict()]})
        assert quiz.total_points == 3

        with pytest.raises(ValidationError):
            quiz.replace_content({"kind": "project"})


class TestReorder:
    def test_stable_reorder_breaks_ties_by_position(self):
        assert stable_reorder(["a", "b", "c", "d"], [2, 1, 2, 0]) == ["d", "b", "a", "c"]

    def test_reorder_length_mismatch(self):
        with pytest.raises(ValidationError):
            stable_reorder(["a", "b"], [0])

    def test_reorder_questions(self):
        quiz = make_quiz(points=(5, 5, 10), published=False)
        quiz.reorder_questions([3, 1, 2])
        assert [q.question_text for q in quiz.content.questions] == ["Question 2", "Question 3", "Question 1"]

    def test_reorder_milestones(self):
        capstone = make_capstone(points=(10, 20, 30), published=False)
        capstone.reorder_milestones([1, 0, 1])
        assert [m.points for m in capstone.content.milestones] == [20, 10, 30]


class TestTypeSwitch:
    def test_quiz_to_project_discards_questions(self):
        quiz = make_quiz(points=(5, 5, 10), published=False)
        original = quiz.content

        switch = quiz.switch_type(AssessmentType.PROJECT)

        assert switch.destructive
        assert switch.previous_type is AssessmentType.QUIZ
        assert switch.new_type is AssessmentType.PROJECT
        assert switch.discarded is original
        assert len(switch.discarded.questions) == 3
        assert isinstance(quiz.content, ProjectContent)
        assert len(quiz.content.project_options) == 1
        assert quiz.attempts == 1
        assert quiz.duration is None

    def test_switch_to_same_type_is_not_destructive(self):
        quiz = make_quiz(published=False)
        switch = quiz.switch_type("quiz")
        assert not switch.destructive
        assert len(quiz.content.questions) == 3

    def test_project_to_quiz_seeds_default_question(self):
        project = make_project(published=False)
        project.switch_type(AssessmentType.QUIZ)
        assert isinstance(project.content, QuestionSetContent)
        assert project.content.questions[0].points == 5
        assert project.duration == 60


def test_deliverable_content_needs_a_concrete_total():
    with pytest.raises(TypeError):
        _DeliverableContent()


def test_project_gradable_question_is_synthetic():
    """Test that project work flows through one essay question worth the total."""
    project = make_project(maxima=(30, 20))
    questions = project.gradable_questions()

    assert len(questions) == 1
    assert questions[0].question_text == "Project Submission"
    assert questions[0].points == 50


def test_assessment_round_trips_through_dict():
    project = make_project()
    restored = Assessment.from_dict(project.to_dict())

    assert restored == project
