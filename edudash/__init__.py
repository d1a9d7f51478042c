"""
EduDash assessment core.

Authoring, publishing, attempting, and grading of course assessments
(quizzes, assignments, projects, and capstones).
"""

__version__ = "0.1.0"
