"""Appointment domain schemas"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

CONFLICT_MESSAGE = "此時段您已有其他預約"


class AcceptInquiryRequest(BaseModel):
    inquiry_id: str = Field(..., min_length=1)


class AppointmentResponse(BaseModel):
    id: str
    client_id: int
    consultant_id: int
    inquiry_id: str
    start_time: datetime
    end_time: datetime
    status: str
    meeting_link: Optional[str] = None
    google_event_id: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    # Stored naive UTC; mark it so clients don't read it as local time
    @field_serializer("start_time", "end_time")
    def serialize_utc(self, value: datetime) -> str:
        return value.isoformat() + "Z"


class ClientProfileSummary(BaseModel):
    id: int
    email: str
    full_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ConsultantClientView(BaseModel):
    client: ClientProfileSummary
    appointments: list[AppointmentResponse]
    fna_data: dict[str, Any]
    fna_completed_at: Optional[datetime] = None
    fna_last_updated: Optional[datetime] = None


# Outcomes of the acceptance workflow. Only Accepted mutates anything.


@dataclass
class NeedsAuthorization:
    auth_url: str

    def to_dict(self) -> dict:
        return {"needsAuth": True, "authUrl": self.auth_url}


@dataclass
class SchedulingConflict:
    message: str = CONFLICT_MESSAGE

    def to_dict(self) -> dict:
        return {"conflict": True, "message": self.message}


@dataclass
class Accepted:
    appointment: Any
    notifications_sent: int = 0

    def to_dict(self) -> dict:
        return {
            "success": True,
            "appointment": AppointmentResponse.model_validate(self.appointment).model_dump(mode="json"),
            "notificationsSent": self.notifications_sent,
        }
