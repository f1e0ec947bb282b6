"""Inquiry router - public intake and consultant inquiry list"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from ...auth import SessionContext, require_consultant
from ...database import get_db
from ...models import INQUIRY_PENDING
from ...rate_limiter import create_rate_limiter
from .schemas import InquiryOptions, InquiryResponse
from .service import InquiryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/inquiries", tags=["Inquiries"])

inquiry_rate_limit = create_rate_limiter(limit=5, window_seconds=3600, key_prefix="inquiry_submit")


def get_inquiry_service(db: Session = Depends(get_db)) -> InquiryService:
    """Dependency injection for InquiryService"""
    return InquiryService(db)


@router.post("")
async def submit_inquiry(
    payload: Any = Body(...),
    service: InquiryService = Depends(get_inquiry_service),
    _: None = Depends(inquiry_rate_limit),
):
    """Public intake form; validation failures come back as {"error", "field", "errors"}"""
    inquiry = await service.submit(payload)
    return {"success": True, "inquiry_id": inquiry.id}


@router.get("", response_model=list[InquiryResponse])
async def list_inquiries(
    status: Optional[str] = Query(INQUIRY_PENDING),
    session: SessionContext = Depends(require_consultant),
    service: InquiryService = Depends(get_inquiry_service),
):
    """Inquiries for the consultant queue, newest first"""
    return service.get_inquiries(status)


@router.get("/options", response_model=InquiryOptions)
async def get_inquiry_options(selected: Optional[str] = Query(None)):
    """Goal catalog and remaining choices for a partial ranking (?selected=a,b)"""
    slots = [goal_id.strip() or None for goal_id in selected.split(",")] if selected else []
    return InquiryService.get_options(slots)
