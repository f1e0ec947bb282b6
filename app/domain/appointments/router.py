"""Appointment router - inquiry acceptance and appointment views"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import SessionContext, get_current_session, require_consultant
from ...database import get_db
from .schemas import AcceptInquiryRequest, AppointmentResponse, ConsultantClientView
from .service import AppointmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])
consultant_router = APIRouter(prefix="/consultant", tags=["Consultant"])


def get_appointment_service(db: Session = Depends(get_db)) -> AppointmentService:
    """Dependency injection for AppointmentService"""
    return AppointmentService(db)


@router.post("/accept")
async def accept_inquiry(
    data: AcceptInquiryRequest,
    session: SessionContext = Depends(require_consultant),
    service: AppointmentService = Depends(get_appointment_service),
):
    """
    Accept a pending inquiry. Returns one of:
    {needsAuth, authUrl}, {conflict, message} or {success, appointment}
    """
    result = await service.accept_inquiry(session, data.inquiry_id)
    return result.to_dict()


@router.get("", response_model=list[AppointmentResponse])
async def list_appointments(
    session: SessionContext = Depends(get_current_session),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.get_appointments(session)


@consultant_router.get("/clients/{client_id}", response_model=ConsultantClientView)
async def get_consultant_client(
    client_id: int,
    session: SessionContext = Depends(require_consultant),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Client profile, shared appointments and FNA answers"""
    return service.get_client_view(session, client_id)
