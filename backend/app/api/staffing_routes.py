"""
Staffing API Routes

POST /api/staffing/options — ranked staffing configurations for a target
                             appointment count
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.deps import get_staffing_engine
from app.services.staffing_engine import StaffingEngine

router = APIRouter(prefix="/api/staffing", tags=["Staffing"])
logger = logging.getLogger("wellness-staffing-routes")


class StaffingRequest(BaseModel):
    service_type: str
    target_appointments: int
    overrides: Optional[Dict[str, Any]] = None


@router.post("/options")
async def staffing_options(
    body: StaffingRequest,
    engine: StaffingEngine = Depends(get_staffing_engine),
):
    logger.info("Staffing options requested: %s, target %d", body.service_type, body.target_appointments)
    return engine.calculate_event_options(body.service_type, body.target_appointments, body.overrides)
