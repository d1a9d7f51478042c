"""
Builders for assessments and submissions used across the test modules.
"""

from typing import Dict, List, Sequence

from edudash.assessments.content import (
    AssessmentType,
    CapstoneContent,
    CapstoneMilestone,
    ProjectContent,
    ProjectOption,
    QuestionSetContent,
    RubricCriterion,
)
from edudash.assessments.models import Assessment
from edudash.assessments.publishing import publish
from edudash.assessments.questions import Question, QuestionType
from edudash.assessments.submissions import Submission, SubmissionStatus

COURSE_ID = "course-101"
STUDENT_ID = "student-1"

OPTIONS = ["3", "4", "5", "6"]


def mc_question(text: str = "What is 2 + 2?", points: float = 5, correct: str = "1") -> Question:
    """Multiple choice question whose correct option is "4" (index 1)."""
    return Question(
        question_text=text,
        type=QuestionType.MULTIPLE_CHOICE,
        points=points,
        options=list(OPTIONS),
        correct_answer=correct,
    )


def tf_question(text: str = "The sky is blue.", points: float = 3, correct: str = "True") -> Question:
    return Question(
        question_text=text,
        type=QuestionType.TRUE_FALSE,
        points=points,
        options=["True", "False"],
        correct_answer=correct,
    )


def short_answer(text: str = "Explain recursion.", points: float = 10) -> Question:
    return Question(
        question_text=text,
        type=QuestionType.SHORT_ANSWER,
        points=points,
        correct_answer="A function that calls itself",
    )


def make_quiz(
    points: Sequence[float] = (5, 5, 10),
    passing_score: int = 70,
    attempts: int = 2,
    published: bool = True,
    **settings
) -> Assessment:
    questions = [mc_question(f"Question {i + 1}", p) for i, p in enumerate(points)]
    assessment = Assessment.create(
        COURSE_ID, "Arithmetic quiz", AssessmentType.QUIZ,
        QuestionSetContent(questions=questions),
        passing_score=passing_score, attempts=attempts, **settings
    )
    return publish(assessment) if published else assessment


def make_assignment(
    questions: Sequence[Question] = (),
    passing_score: int = 70,
    attempts: int = 1,
    published: bool = True
) -> Assessment:
    questions = list(questions) or [short_answer("Question 1"), short_answer("Question 2")]
    assessment = Assessment.create(
        COURSE_ID, "Written assignment", AssessmentType.ASSIGNMENT,
        QuestionSetContent(questions=questions),
        passing_score=passing_score, attempts=attempts
    )
    return publish(assessment) if published else assessment


def make_project(maxima: Sequence[float] = (30, 20), published: bool = True) -> Assessment:
    content = ProjectContent(
        project_options=[ProjectOption(title="Todo app", tech_stack=["python"])],
        rubric=[RubricCriterion(criterion=f"Criterion {i + 1}", max_points=m) for i, m in enumerate(maxima)],
    )
    assessment = Assessment.create(COURSE_ID, "Final project", AssessmentType.PROJECT, content)
    return publish(assessment) if published else assessment


def make_capstone(points: Sequence[float] = (25, 25, 50), published: bool = True) -> Assessment:
    content = CapstoneContent(
        milestones=[
            CapstoneMilestone(title=f"Milestone {i + 1}", due_week=2 * (i + 1), points=p)
            for i, p in enumerate(points)
        ],
        capstone_brief="Build and present a complete product",
    )
    assessment = Assessment.create(COURSE_ID, "Capstone", AssessmentType.CAPSTONE, content)
    return publish(assessment) if published else assessment


def correct_answers(assessment: Assessment) -> List[Dict]:
    """Answers naming the correct option text of every objective question."""
    return [
        {"question_index": i, "answer": q.resolve_correct_option() if q.is_objective else "My answer"}
        for i, q in enumerate(assessment.gradable_questions())
    ]


def graded_submission(
    assessment: Assessment,
    attempt_number: int,
    passed: bool,
    student_id: str = STUDENT_ID,
    percentage: int = None
) -> Submission:
    if percentage is None:
        percentage = 90 if passed else 40
    return Submission(
        assessment_id=assessment.id,
        student_id=student_id,
        attempt_number=attempt_number,
        assessment_version=assessment.version,
        status=SubmissionStatus.GRADED,
        score=assessment.total_points * percentage / 100,
        percentage=percentage,
        passed=passed,
    )


def submitted_submission(assessment: Assessment, attempt_number: int, student_id: str = STUDENT_ID) -> Submission:
    return Submission(
        assessment_id=assessment.id,
        student_id=student_id,
        attempt_number=attempt_number,
        assessment_version=assessment.version,
        status=SubmissionStatus.SUBMITTED,
    )
