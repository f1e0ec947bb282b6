"""Inquiry repository - Database operations for inquiries"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from ...models import INQUIRY_PENDING, Inquiry


class InquiryRepository:
    """Repository for inquiry database operations"""

    @staticmethod
    def create_inquiry(db: Session, form_data: dict[str, Any], requested_time: datetime) -> Inquiry:
        inquiry = Inquiry(form_data=form_data, requested_time=requested_time, status=INQUIRY_PENDING)
        db.add(inquiry)
        db.commit()
        db.refresh(inquiry)
        return inquiry

    @staticmethod
    def get_inquiries(db: Session, status: Optional[str] = INQUIRY_PENDING) -> list[Inquiry]:
        """Inquiries newest first, optionally filtered by status"""
        query = db.query(Inquiry)
        if status:
            query = query.filter(Inquiry.status == status)
        return query.order_by(Inquiry.created_at.desc(), Inquiry.requested_time.desc()).all()

    @staticmethod
    def get_pending_for_update(db: Session, inquiry_id: str) -> Optional[Inquiry]:
        """Lock a pending inquiry for the rest of the transaction"""
        return (
            db.query(Inquiry)
            .filter(Inquiry.id == inquiry_id, Inquiry.status == INQUIRY_PENDING)
            .with_for_update()
            .first()
        )
