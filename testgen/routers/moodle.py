"""
Moodle web-service endpoints.

GET  /courses    — courses visible to the configured token.
GET  /validate   — check that the URL and token are accepted.
POST /sync       — export questions to Moodle XML and import them into a course.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from testgen.dependencies.services import get_exporter, get_moodle_client
from testgen.exceptions import MoodleAPIError
from testgen.models.schemas import (
    MoodleConnectionResponse,
    MoodleCourseResponse,
    MoodleCoursesResponse,
    MoodleSyncResponse,
    SyncMoodleRequest,
)
from testgen.services.moodle_client import MoodleClient
from testgen.services.moodle_exporter import MoodleXMLExporter

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/courses", response_model=MoodleCoursesResponse)
async def list_courses(
    moodle_client: MoodleClient = Depends(get_moodle_client),
) -> MoodleCoursesResponse:
    courses = await moodle_client.get_courses()
    return MoodleCoursesResponse(
        courses=[
            MoodleCourseResponse(id=str(c.id), name=c.full_name, short_name=c.short_name)
            for c in courses
        ]
    )


@router.get(
    "/validate",
    response_model=MoodleConnectionResponse,
    responses={503: {"model": MoodleConnectionResponse}},
)
async def validate_connection(
    moodle_client: MoodleClient = Depends(get_moodle_client),
):
    """
    Report whether Moodle accepts the configured credentials.

    A rejected token or unreachable site is answered with 503 and
    ``connected: false`` rather than an error body.
    """
    try:
        await moodle_client.validate_connection()
    except MoodleAPIError as exc:
        logger.warning("Moodle connection check failed: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=MoodleConnectionResponse(connected=False, error=str(exc)).model_dump(),
        )
    return MoodleConnectionResponse(connected=True, message="Moodle connection is valid")


@router.post("/sync", response_model=MoodleSyncResponse)
async def sync_to_moodle(
    request: SyncMoodleRequest,
    exporter: MoodleXMLExporter = Depends(get_exporter),
    moodle_client: MoodleClient = Depends(get_moodle_client),
) -> MoodleSyncResponse:
    """Export the questions and import the resulting quiz into *course_name*."""
    questions, answers = request.exportable()

    xml_content = exporter.export(request.title, questions, answers)
    result = await moodle_client.upload_quiz(request.course_name, request.title, xml_content)

    if not result.success:
        raise MoodleAPIError(None, f"upload rejected: {result.message}")

    logger.info("Synced %d questions to Moodle course %r", len(questions), request.course_name)
    return MoodleSyncResponse(
        message="Test synced to Moodle successfully",
        moodle_id=result.quiz_id,
        course_id=result.course_id,
    )
