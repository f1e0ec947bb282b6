"""FNA repository - Database operations for FNA snapshots"""

from typing import Any, Optional

from sqlalchemy.orm import Session

from ...models import FnaSnapshot
from ...shared.validators import utc_now


class FnaRepository:
    """Repository for FNA snapshot database operations"""

    @staticmethod
    def get_snapshot(db: Session, client_id: int) -> Optional[FnaSnapshot]:
        return db.query(FnaSnapshot).filter(FnaSnapshot.client_id == client_id).first()

    @staticmethod
    def upsert_snapshot(
        db: Session, client_id: int, fna_data: dict[str, Any], completed: bool = False
    ) -> FnaSnapshot:
        """Insert or replace the client's snapshot, stamping last_updated"""
        now = utc_now()
        snapshot = FnaRepository.get_snapshot(db, client_id)
        if snapshot is None:
            snapshot = FnaSnapshot(client_id=client_id, fna_data=dict(fna_data), last_updated=now)
            db.add(snapshot)
        else:
            # Reassign so the JSON column is flagged dirty
            snapshot.fna_data = dict(fna_data)
            snapshot.last_updated = now

        if completed:
            snapshot.completed_at = now

        db.commit()
        db.refresh(snapshot)
        return snapshot
