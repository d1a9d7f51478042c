"""
Assessment Lifecycle

Authoring, publishing, attempting, scoring and retaking of quizzes,
assignments, projects and capstones.
"""

from edudash.assessments.content import AssessmentType
from edudash.assessments.grading import GradingEngine
from edudash.assessments.models import Assessment, TypeSwitch
from edudash.assessments.policy import get_policy
from edudash.assessments.questions import Question, QuestionType
from edudash.assessments.retake import can_retake
from edudash.assessments.services import AssessmentService
from edudash.assessments.submissions import Answer, Submission, SubmissionStatus

__all__ = [
    'Assessment', 'AssessmentType', 'TypeSwitch', 'get_policy',
    'Question', 'QuestionType',
    'Submission', 'SubmissionStatus', 'Answer',
    'GradingEngine', 'can_retake',
    'AssessmentService',
]
