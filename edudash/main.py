"""
Main application entry point for the EduDash assessment service.

Usage:
    - ASGI server: uvicorn edudash.main:app
    - Direct: python -m edudash.main
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from edudash import __version__
from edudash.assessments.controllers import router as assessments_router
from edudash.assessments.generation import TemplateQuestionGenerator
from edudash.assessments.repositories import MemoryAssessmentRepository, MemorySubmissionRepository
from edudash.assessments.services import AssessmentService
from edudash.common.logger import app_logger, configure_from_settings
from edudash.config import Settings, settings as default_settings

# Setup module logger
logger = app_logger.getChild("main")


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle request validation errors with the standard error body.

    Args:
        request: The incoming request
        exc: The validation exception

    Returns:
        A JSON response with error details
    """
    error_details = [
        {
            "location": list(error.get("loc", [])),
            "message": error.get("msg", "Unknown validation error"),
            "type": error.get("type", "")
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "status": "error",
            "code": "validation_error",
            "message": "Validation error",
            "details": error_details
        }
    )


async def build_service(config: Settings) -> AssessmentService:
    """
    Build the assessment service on the configured repository backend.

    Args:
        config: Application settings

    Returns:
        Service wired to memory or SQL repositories
    """
    if config.REPOSITORY_BACKEND == "database":
        from edudash.database import initialize_database
        from edudash.database.repositories import SqlAssessmentRepository, SqlSubmissionRepository

        await initialize_database(config.DATABASE_URL, echo=config.SQL_ECHO)
        assessments, submissions = SqlAssessmentRepository(), SqlSubmissionRepository()
    else:
        assessments, submissions = MemoryAssessmentRepository(), MemorySubmissionRepository()

    return AssessmentService(
        assessments,
        submissions,
        generator=TemplateQuestionGenerator(),
        structural_edit_policy=config.STRUCTURAL_EDIT_POLICY,
        max_generated_questions=config.MAX_GENERATED_QUESTIONS,
        default_passing_score=config.DEFAULT_PASSING_SCORE,
    )


def create_app(
    service: Optional[AssessmentService] = None,
    config: Optional[Settings] = None
) -> FastAPI:
    """
    Create and configure a FastAPI application instance.

    Args:
        service: Assessment service to expose; built from settings on startup if omitted
        config: Settings to use instead of the global ones

    Returns:
        Configured FastAPI application
    """
    config = config or default_settings
    configure_from_settings(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Application startup sequence initiated.")
        app.state.assessment_service = service or await build_service(config)
        logger.info(f"Assessment service ready ({config.REPOSITORY_BACKEND} repositories)")

        yield

        logger.info("Application shutdown sequence initiated.")
        if service is None and config.REPOSITORY_BACKEND == "database":
            from edudash.database import close_database
            await close_database()
        logger.info("Application shutdown sequence complete.")

    app = FastAPI(
        title=config.PROJECT_NAME,
        description="Assessment authoring, attempts and grading",
        version=__version__,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(assessments_router, prefix=config.API_V1_STR)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "version": __version__}

    logger.info(f"Application created with {len(app.routes)} routes")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("edudash.main:app", host="0.0.0.0", port=8000, reload=False)
