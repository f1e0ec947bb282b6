"""
Domain errors shared by the inquiry, appointment and FNA workflows.

Every error maps to a JSON body of the form ``{"error": message}`` (see the
exception handler in main.py). Scheduling conflicts and missing Google
authorization are not errors: the acceptance workflow returns them as results.
"""

from typing import Optional


class FnaServiceError(Exception):
    """Base class for errors surfaced to API callers"""

    status_code = 400

    def __init__(self, message: str, status_code: Optional[int] = None, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.field:
            body["field"] = self.field
        return body


class ValidationError(FnaServiceError):
    """User-correctable input problem; ``errors`` holds every failing field"""

    def __init__(self, message: str, field: Optional[str] = None, errors: Optional[list[dict]] = None):
        super().__init__(message, status_code=400, field=field)
        self.errors = errors or [{"field": field, "message": message}]

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["errors"] = self.errors
        return body

    @classmethod
    def from_pydantic(cls, exc) -> "ValidationError":
        """Flatten a pydantic ValidationError; the first failure becomes the message"""
        errors = []
        for err in exc.errors():
            field = ".".join(str(part) for part in err.get("loc", ()))
            message = err.get("msg", "Invalid value")
            # pydantic prefixes messages raised from validators
            if message.startswith("Value error, "):
                message = message[len("Value error, "):]
            errors.append({"field": field or None, "message": message})

        first = errors[0] if errors else {"field": None, "message": "Invalid input"}
        return cls(first["message"], field=first["field"], errors=errors)


class InquiryNotFoundError(FnaServiceError):
    """Inquiry is missing or was already claimed by another consultant"""

    def __init__(self, message: str = "Inquiry not found or already processed"):
        super().__init__(message, status_code=400)


class ProfileMissingError(FnaServiceError):
    def __init__(self, message: str = "Failed to fetch consultant profile"):
        super().__init__(message, status_code=400)


class DownstreamServiceError(FnaServiceError):
    """Persistence or identity provider failure; no partial-state cleanup is attempted"""

    status_code = 500
