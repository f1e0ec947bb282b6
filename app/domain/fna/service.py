"""FNA service - wizard persistence and auto-save"""

import asyncio
import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from ...database import SessionLocal
from ...errors import ValidationError
from .repository import FnaRepository
from .schemas import FamilySecurityStep, normalize_step_payload
from .wizard import FNA_STEPS, WizardController

logger = logging.getLogger(__name__)


class FnaService:
    """Service layer for the FNA wizard"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = FnaRepository()

    def get_answers(self, client_id: int) -> dict[str, Any]:
        snapshot = self.repo.get_snapshot(self.db, client_id)
        return dict(snapshot.fna_data or {}) if snapshot else {}

    def get_snapshot(self, client_id: int) -> dict:
        snapshot = self.repo.get_snapshot(self.db, client_id)
        return {
            "client_id": client_id,
            "fna_data": dict(snapshot.fna_data or {}) if snapshot else {},
            "steps": list(FNA_STEPS),
            "completed_at": snapshot.completed_at if snapshot else None,
            "last_updated": snapshot.last_updated if snapshot else None,
        }

    def idle_autosave_status(self, client_id: int) -> dict:
        """Auto-save status when no draft is scheduled; the stored snapshot is the last save"""
        snapshot = self.repo.get_snapshot(self.db, client_id)
        return {
            "pending": False,
            "saving": False,
            "last_saved_at": snapshot.last_updated.isoformat() if snapshot else None,
            "last_error": None,
        }

    def submit_step(self, client_id: int, step: str, payload: Any) -> dict:
        """Validate one step, store it at that wizard position and persist immediately"""
        try:
            normalized = normalize_step_payload(step, payload)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e
        except ValueError as e:
            raise ValidationError(str(e), field="step") from e

        completed_answers: list[dict] = []
        wizard = WizardController.at_step(
            step,
            answers=self.get_answers(client_id),
            on_complete=completed_answers.append,
        )
        completed = wizard.advance(normalized)

        self.repo.upsert_snapshot(self.db, client_id, wizard.answers, completed=completed)
        if completed:
            logger.info(f"✅ FNA completed for client {client_id}")

        return {
            "step": step,
            "next_step": None if completed else wizard.current_step,
            "completed": completed,
            "fna_data": wizard.answers,
        }

    def save_draft(self, client_id: int, fna_data: dict[str, Any]) -> None:
        """Persist the whole answer map as-is (auto-save path)"""
        self.repo.upsert_snapshot(self.db, client_id, fna_data)

    @staticmethod
    def preview_family_security(payload: Any) -> dict:
        try:
            return FamilySecurityStep.model_validate(payload or {}).summary()
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e


def _save_in_new_session(client_id: int, fna_data: dict[str, Any]) -> None:
    db = SessionLocal()
    try:
        FnaService(db).save_draft(client_id, fna_data)
    finally:
        db.close()


def autosave_factory(client_id: int):
    """Save callable for AutoSaveRegistry; runs the blocking DB write off the event loop"""

    async def save(fna_data: dict[str, Any]) -> None:
        await asyncio.to_thread(_save_in_new_session, client_id, fna_data)

    return save
