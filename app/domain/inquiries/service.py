"""Inquiry service - public intake validation and persistence"""

import logging
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...email_service import send_inquiry_received_email
from ...errors import DownstreamServiceError, ValidationError
from ...models import Inquiry
from .repository import InquiryRepository
from .schemas import (
    GENDERS,
    INQUIRY_GOAL_CATALOG,
    TIME_SLOTS,
    InquirySubmission,
    remaining_goal_choices,
)

logger = logging.getLogger(__name__)


class InquiryService:
    """Service layer for inquiry intake"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = InquiryRepository()

    @staticmethod
    def validate(raw: Any) -> InquirySubmission:
        if not isinstance(raw, dict):
            raise ValidationError("Invalid request body")
        try:
            return InquirySubmission.model_validate(raw)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e

    async def submit(self, raw: Any) -> Inquiry:
        """Validate and store a pending inquiry, then acknowledge it by email (best-effort)"""
        submission = self.validate(raw)

        try:
            inquiry = self.repo.create_inquiry(self.db, submission.form_data(), submission.requested_time)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to store inquiry: {e}")
            raise DownstreamServiceError("Failed to submit inquiry") from e

        logger.info(f"📥 Inquiry {inquiry.id} submitted for {submission.appointment_date} {submission.appointment_time}")

        try:
            await send_inquiry_received_email(
                to=submission.email,
                client_name=submission.name,
                appointment_date=submission.appointment_date.isoformat(),
                appointment_time=submission.appointment_time,
            )
        except Exception as e:
            logger.warning(f"⚠️ Inquiry confirmation email failed for {inquiry.id}: {e}")

        return inquiry

    def get_inquiries(self, status: Optional[str]) -> list[Inquiry]:
        return self.repo.get_inquiries(self.db, status)

    @staticmethod
    def get_options(selected: list[Optional[str]]) -> dict:
        return {
            "goals": list(INQUIRY_GOAL_CATALOG),
            "remaining_choices": remaining_goal_choices(selected),
            "time_slots": list(TIME_SLOTS),
            "genders": list(GENDERS),
        }
