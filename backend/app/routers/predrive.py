"""
Pre-Drive Router
Advisory risk assessment before a trip. Stateless: nothing here touches the
monitoring session.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from app.core.dependencies import get_advisor
from app.models.schemas import PreDriveRequest
from app.services.predrive_service import PreDriveAdvisor, PreDriveServiceError

logger = logging.getLogger("fatiguewatch.predrive_router")

router = APIRouter(prefix="/predrive", tags=["Pre-Drive"])


@router.post("/analyze")
async def analyze(request: Request, advisor: PreDriveAdvisor = Depends(get_advisor)):
    """
    Body: {sleepHours, tripDurationHours, timeOfDay, totalDrowsy?, totalFatigued?,
    age?, heightCm?, weightKg?}. Returns {riskLevel, explanation, recommendations}.
    """
    try:
        body = await request.json()
        data = PreDriveRequest.model_validate(body)
    except (ValueError, ValidationError):
        return JSONResponse(status_code=400, content={"error": "Bad input"})

    try:
        assessment = await advisor.analyze(data)
    except PreDriveServiceError as e:
        logger.error("Pre-drive analysis failed: %s", e)
        return JSONResponse(status_code=500, content={"error": "Model call failed"})

    return assessment.model_dump(mode="json")
