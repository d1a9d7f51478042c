"""
Tests for the publish lifecycle guard.
"""

import pytest

from edudash.assessments.content import AssessmentType, QuestionSetContent
from edudash.assessments.models import Assessment
from edudash.assessments.publishing import check_publishable, publish, toggle_publish, unpublish
from edudash.common.error_handling import NotGradable
from edudash.tests.factories import COURSE_ID, make_capstone, make_project, make_quiz, mc_question


def test_quiz_without_questions_is_not_gradable():
    quiz = Assessment.create(COURSE_ID, "Empty quiz", AssessmentType.QUIZ, QuestionSetContent(questions=[]))

    with pytest.raises(NotGradable) as exc_info:
        publish(quiz)

    assert "A quiz needs at least one question" in exc_info.value.problems
    assert not quiz.is_published


def test_quiz_with_one_valid_question_publishes():
    quiz = Assessment.create(
        COURSE_ID, "One question", AssessmentType.QUIZ,
        QuestionSetContent(questions=[mc_question()])
    )

    published = publish(quiz)

    assert published.is_published
    assert not quiz.is_published


def test_default_quiz_is_not_gradable():
    """Test that the blank default question must be filled in before publishing."""
    quiz = Assessment.create(COURSE_ID, "Draft")

    problems = check_publishable(quiz)

    assert "Question 1 has no text" in problems
    assert "Question 1 has an empty option" in problems


def test_blank_question_text_blocks_publish():
    quiz = make_quiz(published=False)
    quiz.content.questions[1].question_text = "   "

    with pytest.raises(NotGradable) as exc_info:
        publish(quiz)
    assert exc_info.value.problems == ["Question 2 has no text"]


def test_zero_points_blocks_publish():
    quiz = make_quiz(points=(0,), published=False)
    assert check_publishable(quiz) == ["Total points must be greater than zero"]


def test_project_needs_titled_option():
    project = Assessment.create(COURSE_ID, "Project", AssessmentType.PROJECT)
    assert "Project option 1 has no title" in check_publishable(project)

    project.content.project_options[0].title = "Todo app"
    assert check_publishable(project) == []


def test_project_without_options_is_not_gradable():
    project = make_project(published=False)
    project.content.project_options.clear()

    assert "A project needs at least one project option" in check_publishable(project)


def test_capstone_without_milestones_is_not_gradable():
    capstone = make_capstone(published=False)
    capstone.content.milestones.clear()

    problems = check_publishable(capstone)
    assert "A capstone needs at least one milestone" in problems
    assert "Total points must be greater than zero" in problems


def test_unpublish_is_always_permitted():
    quiz = make_quiz()
    assert not unpublish(quiz).is_published

    draft = Assessment.create(COURSE_ID, "Draft")
    assert not unpublish(draft).is_published


def test_toggle_publish():
    quiz = make_quiz(published=False)
    published = toggle_publish(quiz)
    assert published.is_published
    assert not toggle_publish(published).is_published
