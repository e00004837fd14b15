"""
Health check endpoint.
"""
from fastapi import APIRouter, Depends
from datetime import datetime, timezone

from testgen.config import settings
from testgen.dependencies.services import get_llm_factory
from testgen.models.schemas import HealthCheckResponse
from testgen.services.llm_factory import LLMFactory

router = APIRouter()


@router.get("/", response_model=HealthCheckResponse)
async def health_check(llm_factory: LLMFactory = Depends(get_llm_factory)):
    """
    Report which LLM providers have credentials and whether Moodle is configured.

    No outbound calls are made; a service with no configured provider is
    reported as degraded.
    """
    providers = llm_factory.available_providers()
    moodle_status = "configured" if settings.MOODLE_URL and settings.MOODLE_TOKEN else "not_configured"

    return HealthCheckResponse(
        status="healthy" if providers else "degraded",
        llm_providers=providers,
        moodle=moodle_status,
        timestamp=datetime.now(timezone.utc),
    )
