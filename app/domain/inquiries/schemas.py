"""Inquiry domain schemas - public intake form and consultant views"""

from datetime import date, datetime, time
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ...shared.validators import business_tz, to_utc_naive, validate_email

# Goal catalog for the intake form; the order chosen by the prospect is the priority
INQUIRY_GOAL_CATALOG = (
    {"id": "retirement", "label": "退休規劃"},
    {"id": "children_education", "label": "子女教育"},
    {"id": "property", "label": "購屋置產"},
    {"id": "wealth_growth", "label": "財富增值"},
    {"id": "risk_protection", "label": "風險保障"},
)
INQUIRY_GOAL_IDS = tuple(goal["id"] for goal in INQUIRY_GOAL_CATALOG)
REQUIRED_GOAL_COUNT = len(INQUIRY_GOAL_IDS)

GENDERS = ("male", "female", "other")

# Bookable slots, business-local time (lunch hour excluded)
TIME_SLOTS = ("09:00", "10:00", "11:00", "13:00", "14:00", "15:00", "16:00", "17:00")

MIN_BIRTH_DATE = date(1900, 1, 1)
MAX_NAME_LENGTH = 100


def remaining_goal_choices(selected: list[Optional[str]]) -> list[list[dict]]:
    """
    Candidate goals for each of the five priority slots.

    Slot i may offer its own current value plus every goal not chosen in another
    slot, so each dropdown can only produce a distinct ranking.
    """
    slots = list(selected)[:REQUIRED_GOAL_COUNT]
    slots += [None] * (REQUIRED_GOAL_COUNT - len(slots))

    choices = []
    for index, current in enumerate(slots):
        taken = {goal_id for i, goal_id in enumerate(slots) if i != index and goal_id}
        choices.append([goal for goal in INQUIRY_GOAL_CATALOG if goal["id"] not in taken or goal["id"] == current])
    return choices


class InquirySubmission(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str
    gender: Literal["male", "female", "other"]
    birth_date: date
    email: str
    has_children: bool
    has_insurance: bool
    has_mortgage: bool
    has_investment: bool
    financial_goals: list[str]
    requested_time: Optional[datetime] = None
    appointment_date: Optional[date] = None
    appointment_time: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v:
            raise ValueError("Name is required")
        if len(v) > MAX_NAME_LENGTH:
            raise ValueError(f"Name must be at most {MAX_NAME_LENGTH} characters")
        return v

    @field_validator("birth_date")
    @classmethod
    def validate_birth_date(cls, v: date) -> date:
        if v < MIN_BIRTH_DATE:
            raise ValueError("Birth date cannot be before 1900-01-01")
        if v > datetime.now(business_tz()).date():
            raise ValueError("Birth date cannot be in the future")
        return v

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v: str) -> str:
        if not v:
            raise ValueError("Email is required")
        return validate_email(v)

    @field_validator("financial_goals")
    @classmethod
    def validate_goals(cls, v: list[str]) -> list[str]:
        unknown = [goal_id for goal_id in v if goal_id not in INQUIRY_GOAL_IDS]
        if unknown:
            raise ValueError(f"Unknown financial goal(s): {', '.join(unknown)}")
        if len(set(v)) != len(v):
            raise ValueError("Each financial goal can only be ranked once")
        if len(v) != REQUIRED_GOAL_COUNT:
            raise ValueError(f"Please rank all {REQUIRED_GOAL_COUNT} financial goals")
        return v

    @field_validator("appointment_time")
    @classmethod
    def validate_slot(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in TIME_SLOTS:
            raise ValueError(f"Appointment time must be one of: {', '.join(TIME_SLOTS)}")
        return v

    @model_validator(mode="after")
    def resolve_requested_time(self):
        """Fill requested_time from date + slot, or check a given instant falls on a slot"""
        if self.requested_time is None:
            if self.appointment_date is None or self.appointment_time is None:
                raise ValueError("Please choose an appointment date and time")
            hour, minute = (int(part) for part in self.appointment_time.split(":"))
            self.requested_time = datetime.combine(self.appointment_date, time(hour, minute), tzinfo=business_tz())

        tz = business_tz()
        local = (
            self.requested_time.astimezone(tz)
            if self.requested_time.tzinfo
            else self.requested_time.replace(tzinfo=tz)
        )
        if local.strftime("%H:%M") not in TIME_SLOTS or local.second or local.microsecond:
            raise ValueError(f"Appointment time must be one of: {', '.join(TIME_SLOTS)}")
        if local.date() <= datetime.now(tz).date():
            raise ValueError("Appointment date must be after today")

        self.appointment_date = local.date()
        self.appointment_time = local.strftime("%H:%M")
        self.requested_time = to_utc_naive(local)
        return self

    def form_data(self) -> dict[str, Any]:
        """JSON stored on the inquiry row"""
        return self.model_dump(
            mode="json",
            exclude={"requested_time", "appointment_date", "appointment_time"},
        )


class InquiryResponse(BaseModel):
    id: str
    form_data: dict[str, Any]
    requested_time: datetime
    status: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class InquiryOptions(BaseModel):
    goals: list[dict]
    remaining_choices: list[list[dict]]
    time_slots: list[str]
    genders: list[str]
    required_goal_count: int = Field(REQUIRED_GOAL_COUNT)
