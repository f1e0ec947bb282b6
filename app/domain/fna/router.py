"""FNA router - wizard steps, draft auto-save and catalogs"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ...auth import SessionContext, require_client
from ...database import get_db
from .autosave import AutoSaveRegistry
from .schemas import (
    FAMILY_SECURITY_CATEGORIES,
    FNA_GOAL_CATALOG,
    LIFESTYLE_OPTIONS,
    DraftUpdate,
    FnaSnapshotResponse,
    StepResult,
    seeded_family_members,
)
from .service import FnaService
from .wizard import FNA_STEPS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/fna", tags=["FNA"])


def get_fna_service(db: Session = Depends(get_db)) -> FnaService:
    """Dependency injection for FnaService"""
    return FnaService(db)


def get_autosave_registry(request: Request) -> AutoSaveRegistry:
    return request.app.state.autosave


@router.get("", response_model=FnaSnapshotResponse)
async def get_fna(
    session: SessionContext = Depends(require_client),
    service: FnaService = Depends(get_fna_service),
):
    """The caller's saved answers (empty if they haven't started)"""
    return service.get_snapshot(session.profile_id)


@router.post("/steps/{step}", response_model=StepResult)
async def submit_step(
    step: str,
    payload: Any = Body(None),
    session: SessionContext = Depends(require_client),
    service: FnaService = Depends(get_fna_service),
    registry: AutoSaveRegistry = Depends(get_autosave_registry),
):
    """Validate and store one step; submitting the last step completes the analysis"""
    # A scheduled draft is older than this step and must not land after it
    await registry.cancel(session.profile_id)
    return service.submit_step(session.profile_id, step, payload)


@router.put("/draft", status_code=202)
async def save_draft(
    data: DraftUpdate,
    session: SessionContext = Depends(require_client),
    registry: AutoSaveRegistry = Depends(get_autosave_registry),
):
    """Debounced save of the full answer map; the last draft within the quiet period wins"""
    registry.get(session.profile_id).notify(data.fna_data)
    return {"scheduled": True}


@router.get("/autosave")
async def get_autosave_status(
    session: SessionContext = Depends(require_client),
    service: FnaService = Depends(get_fna_service),
    registry: AutoSaveRegistry = Depends(get_autosave_registry),
):
    coordinator = registry.find(session.profile_id)
    if coordinator is None:
        return service.idle_autosave_status(session.profile_id)
    return coordinator.status()


@router.get("/catalog")
async def get_catalog():
    return {
        "steps": list(FNA_STEPS),
        "goals": list(FNA_GOAL_CATALOG),
        "family_security_categories": list(FAMILY_SECURITY_CATEGORIES),
        "lifestyle_options": list(LIFESTYLE_OPTIONS),
        "family_members": seeded_family_members(),
    }


@router.post("/family-security/summary")
async def preview_family_security(payload: Any = Body(None)):
    """Need, coverage and gap for unsaved family-security inputs"""
    return JSONResponse(FnaService.preview_family_security(payload))
