from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime

from .shared.validators import validate_email


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, max_length=255)

    @field_validator("full_name")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if v else v


class ProfileResponse(BaseModel):
    id: int
    firebase_uid: str
    full_name: Optional[str]
    email: str
    capabilities: List[str]
    created_at: Optional[datetime] = None


class ForgotPasswordRequest(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)


class ChangePasswordRequest(BaseModel):
    new_password: str = Field(..., min_length=8, max_length=128)


class MessageResponse(BaseModel):
    message: str
