"""
Publish Lifecycle Guard

Validates an assessment before it moves from draft to published.
Unpublishing is always permitted.
"""

from dataclasses import replace
from typing import List

from edudash.assessments.content import CapstoneContent, ProjectContent, QuestionSetContent
from edudash.assessments.models import Assessment
from edudash.common.error_handling import NotGradable, ValidationError
from edudash.common.serialization import utcnow


def _question_problems(assessment: Assessment, content: QuestionSetContent) -> List[str]:
    problems = []
    if not content.questions:
        problems.append(f"A {assessment.type.value} needs at least one question")
    for index, question in enumerate(content.questions):
        label = f"Question {index + 1}"
        if not question.question_text.strip():
            problems.append(f"{label} has no text")
        if not assessment.policy.allows(question.type):
            problems.append(f"{label}: {question.type.value} is not allowed in a {assessment.type.value}")
        try:
            question.validate()
        except ValidationError as e:
            problems.append(f"{label}: {e.message}")
            continue
        if question.is_objective and any(not option.strip() for option in question.options):
            problems.append(f"{label} has an empty option")
    return problems


def check_publishable(assessment: Assessment) -> List[str]:
    """
    Collect every reason the assessment cannot be published.

    Returns:
        Problem descriptions; empty when the assessment may be published
    """
    problems = []
    content = assessment.content

    if not 0 <= assessment.passing_score <= 100:
        problems.append("Passing score must be between 0 and 100")

    if isinstance(content, QuestionSetContent):
        problems.extend(_question_problems(assessment, content))
    elif isinstance(content, ProjectContent):
        if not content.project_options:
            problems.append("A project needs at least one project option")
        for index, option in enumerate(content.project_options):
            if not option.title.strip():
                problems.append(f"Project option {index + 1} has no title")
        if not content.rubric:
            problems.append("A project needs at least one rubric criterion")
    elif isinstance(content, CapstoneContent):
        if not content.milestones:
            problems.append("A capstone needs at least one milestone")
        for index, milestone in enumerate(content.milestones):
            if not milestone.title.strip():
                problems.append(f"Milestone {index + 1} has no title")

    if assessment.total_points <= 0:
        problems.append("Total points must be greater than zero")

    if assessment.start_date and assessment.end_date and assessment.start_date > assessment.end_date:
        problems.append("Start date must not be after end date")

    return problems


def publish(assessment: Assessment) -> Assessment:
    """
    Move an assessment to published.

    Returns:
        A published copy of the assessment

    Raises:
        NotGradable: If any publish invariant does not hold
    """
    problems = check_publishable(assessment)
    if problems:
        raise NotGradable(assessment.id, problems)
    return replace(assessment, is_published=True, updated_at=utcnow())


def unpublish(assessment: Assessment) -> Assessment:
    return replace(assessment, is_published=False, updated_at=utcnow())


def toggle_publish(assessment: Assessment) -> Assessment:
    if assessment.is_published:
        return unpublish(assessment)
    return publish(assessment)
