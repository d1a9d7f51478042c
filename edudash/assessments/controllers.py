"""
Assessment Controllers Module

This module provides API endpoints for the assessment lifecycle:
- Authoring, updating, reordering and deleting assessments
- Publishing and unpublishing
- Generating questions
- Starting, saving, submitting and grading attempts
- Listing submissions for grading and learner history
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator

from edudash.assessments.services import AssessmentService
from edudash.common.error_handling import ErrorCode, error_response
from edudash.common.logger import app_logger
from edudash.common.results import OperationResult
from edudash.common.serialization import serialize

# Set up module logger
logger = app_logger.getChild("assessments.controllers")

router = APIRouter(tags=["Assessments"])

STATUS_FOR_CODE = {
    ErrorCode.NOT_FOUND_ERROR: status.HTTP_404_NOT_FOUND,
    ErrorCode.ASSESSMENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.SUBMISSION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.VALIDATION_ERROR: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.NOT_GRADABLE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.INCOMPLETE_SUBMISSION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.INVARIANT_VIOLATION: status.HTTP_409_CONFLICT,
    ErrorCode.STRUCTURAL_EDIT_BLOCKED: status.HTTP_409_CONFLICT,
    ErrorCode.ASSESSMENT_UNAVAILABLE: status.HTTP_409_CONFLICT,
    ErrorCode.ATTEMPT_LIMIT_EXCEEDED: status.HTTP_409_CONFLICT,
    ErrorCode.ALREADY_PASSED: status.HTTP_409_CONFLICT,
    ErrorCode.ATTEMPT_PENDING: status.HTTP_409_CONFLICT,
    ErrorCode.GENERATION_ERROR: status.HTTP_502_BAD_GATEWAY,
}


def get_assessment_service(request: Request) -> AssessmentService:
    """Get the AssessmentService instance from the application state."""
    return request.app.state.assessment_service


def respond(result: OperationResult, message: str, success_status: int = status.HTTP_200_OK) -> JSONResponse:
    """
    Turn a service result into the standard response envelope.

    Args:
        result: Result returned by the service
        message: Message for a successful response
        success_status: HTTP status for a successful response

    Returns:
        JSON response with ``status``, ``message`` and ``data`` on success,
        or the standard error body on failure
    """
    if not result.ok:
        status_code = STATUS_FOR_CODE.get(result.code, status.HTTP_400_BAD_REQUEST)
        return JSONResponse(status_code=status_code, content=error_response(result.error))

    body: Dict[str, Any] = {"status": "success", "message": message, "data": serialize(result.value)}
    if result.meta:
        body["meta"] = serialize(result.meta)
    return JSONResponse(status_code=success_status, content=body)


# Request models
class CreateAssessmentRequest(BaseModel):
    course_id: str = Field(..., min_length=1, description="Owning course")
    title: str = Field(..., description="Assessment title")
    type: str = Field("quiz", description="quiz, assignment, project or capstone")
    description: str = Field("", description="Assessment description")
    content: Optional[Dict[str, Any]] = Field(None, description="Type-specific content; type default if omitted")
    passing_score: Optional[int] = Field(None, description="Minimum percentage to pass")
    duration: Optional[int] = Field(None, description="Time limit in minutes")
    attempts: Optional[int] = Field(None, description="Allowed attempts")
    is_required_for_completion: bool = Field(True, description="Counts toward course completion")
    start_date: Optional[datetime] = Field(None, description="Opens for attempts")
    end_date: Optional[datetime] = Field(None, description="Closes for attempts")
    module_id: Optional[str] = Field(None, description="Owning module")
    lesson_id: Optional[str] = Field(None, description="Owning lesson")
    order: int = Field(0, description="Position within the course")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "course_id": "course-101",
            "title": "Week 1 Quiz",
            "type": "quiz",
            "passing_score": 70,
        }
    })


class UpdateAssessmentRequest(BaseModel):
    patch: Dict[str, Any] = Field(..., description="Fields to change")
    discard_content: bool = Field(False, description="Confirms a destructive type change")


class AssessmentOrder(BaseModel):
    assessment_id: str = Field(..., min_length=1, description="Assessment to move")
    order: int = Field(..., ge=0, description="New position within the course")


class ReorderRequest(BaseModel):
    orders: List[AssessmentOrder] = Field(..., min_length=1, description="New positions")


class GenerateQuestionsRequest(BaseModel):
    topic: str = Field(..., description="Topic handed to the generator")
    count: int = Field(5, description="Number of questions to request")
    mode: str = Field("append", description="replace or append")


class StartAttemptRequest(BaseModel):
    student_id: str = Field(..., min_length=1, description="Learner starting the attempt")
    practice: bool = Field(False, description="Attempt again after passing")


class AnswerModel(BaseModel):
    question_index: int = Field(..., ge=0, description="Index of the answered question")
    answer: Optional[str] = Field(None, description="Answer text")


class AnswersRequest(BaseModel):
    answers: List[AnswerModel] = Field(default_factory=list, description="Answers by question index")


class GradeRequest(BaseModel):
    score_overrides: Dict[int, float] = Field(default_factory=dict, description="Score per item index")
    feedback: Optional[str] = Field(None, description="Instructor feedback")

    @field_validator("score_overrides")
    @classmethod
    def validate_scores(cls, v):
        """Scores are never negative."""
        for index, score in v.items():
            if score < 0:
                raise ValueError(f"Score for item {index} cannot be negative")
        return v


# Assessment endpoints
@router.post("/assessments", status_code=status.HTTP_201_CREATED)
async def create_assessment(
    request: CreateAssessmentRequest,
    service: AssessmentService = Depends(get_assessment_service)
):
    fields = request.model_dump(exclude={"course_id", "title", "type", "content"}, exclude_none=True)
    result = await service.create_assessment(
        request.course_id, request.title, request.type, request.content, **fields
    )
    return respond(result, "Assessment created", status.HTTP_201_CREATED)


@router.get("/courses/{course_id}/assessments")
async def list_course_assessments(
    course_id: str,
    service: AssessmentService = Depends(get_assessment_service)
):
    result = await service.list_course_assessments(course_id)
    return respond(result, "Assessments retrieved")


@router.patch("/courses/{course_id}/assessments/order")
async def reorder_assessments(
    course_id: str,
    request: ReorderRequest,
    service: AssessmentService = Depends(get_assessment_service)
):
    orders = {item.assessment_id: item.order for item in request.orders}
    result = await service.reorder_assessments(course_id, orders)
    return respond(result, "Assessments reordered")


@router.get("/assessments/{assessment_id}")
async def get_assessment(
    assessment_id: str,
    version: Optional[int] = None,
    service: AssessmentService = Depends(get_assessment_service)
):
    result = await service.get_assessment(assessment_id, version)
    return respond(result, "Assessment retrieved")


@router.patch("/assessments/{assessment_id}")
async def update_assessment(
    assessment_id: str,
    request: UpdateAssessmentRequest,
    service: AssessmentService = Depends(get_assessment_service)
):
    result = await service.update_assessment(assessment_id, request.patch, request.discard_content)
    return respond(result, "Assessment updated")


@router.delete("/assessments/{assessment_id}")
async def delete_assessment(
    assessment_id: str,
    service: AssessmentService = Depends(get_assessment_service)
):
    result = await service.delete_assessment(assessment_id)
    return respond(result, "Assessment deleted")


@router.post("/assessments/{assessment_id}/publish")
async def publish_assessment(
    assessment_id: str,
    service: AssessmentService = Depends(get_assessment_service)
):
    return respond(await service.publish(assessment_id), "Assessment published")


@router.post("/assessments/{assessment_id}/unpublish")
async def unpublish_assessment(
    assessment_id: str,
    service: AssessmentService = Depends(get_assessment_service)
):
    return respond(await service.unpublish(assessment_id), "Assessment unpublished")


@router.post("/assessments/{assessment_id}/toggle-publish")
async def toggle_publish_assessment(
    assessment_id: str,
    service: AssessmentService = Depends(get_assessment_service)
):
    return respond(await service.toggle_publish(assessment_id), "Publish state changed")


@router.post("/assessments/{assessment_id}/generate")
async def generate_questions(
    assessment_id: str,
    request: GenerateQuestionsRequest,
    service: AssessmentService = Depends(get_assessment_service)
):
    result = await service.generate_questions(assessment_id, request.topic, request.count, request.mode)
    return respond(result, "Questions generated")


# Attempt endpoints
@router.post("/assessments/{assessment_id}/attempts", status_code=status.HTTP_201_CREATED)
async def start_attempt(
    assessment_id: str,
    request: StartAttemptRequest,
    service: AssessmentService = Depends(get_assessment_service)
):
    result = await service.start_attempt(assessment_id, request.student_id, request.practice)
    return respond(result, "Attempt started", status.HTTP_201_CREATED)


@router.get("/assessments/{assessment_id}/attempts/{student_id}")
async def attempt_status(
    assessment_id: str,
    student_id: str,
    service: AssessmentService = Depends(get_assessment_service)
):
    result = await service.attempt_status(assessment_id, student_id)
    return respond(result, "Attempt status retrieved")


@router.get("/submissions/{submission_id}")
async def get_submission(
    submission_id: str,
    service: AssessmentService = Depends(get_assessment_service)
):
    return respond(await service.get_submission(submission_id), "Submission retrieved")


@router.put("/submissions/{submission_id}/answers")
async def save_draft_answers(
    submission_id: str,
    request: AnswersRequest,
    service: AssessmentService = Depends(get_assessment_service)
):
    answers = [a.model_dump() for a in request.answers]
    result = await service.save_draft_answers(submission_id, answers)
    return respond(result, "Answers saved")


@router.post("/submissions/{submission_id}/submit")
async def submit_attempt(
    submission_id: str,
    request: AnswersRequest,
    service: AssessmentService = Depends(get_assessment_service)
):
    answers = [a.model_dump() for a in request.answers]
    result = await service.submit_attempt(submission_id, answers)
    return respond(result, "Attempt submitted")


@router.post("/submissions/{submission_id}/grade")
async def grade_attempt(
    submission_id: str,
    request: GradeRequest,
    service: AssessmentService = Depends(get_assessment_service)
):
    result = await service.grade_attempt(submission_id, request.score_overrides, request.feedback)
    return respond(result, "Attempt graded")


@router.get("/assessments/{assessment_id}/submissions")
async def list_submissions(
    assessment_id: str,
    status_filter: Optional[str] = Query(None, alias="status"),
    service: AssessmentService = Depends(get_assessment_service)
):
    result = await service.list_submissions(assessment_id, status_filter)
    return respond(result, "Submissions retrieved")


@router.get("/students/{student_id}/submissions")
async def list_student_submissions(
    student_id: str,
    assessment_id: Optional[str] = None,
    service: AssessmentService = Depends(get_assessment_service)
):
    result = await service.list_student_submissions(student_id, assessment_id)
    return respond(result, "Submissions retrieved")
