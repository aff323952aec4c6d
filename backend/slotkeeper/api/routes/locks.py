"""
Locks: reserve capacity ahead of confirmation, check it, give it back.
"""
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from slotkeeper.api.deps import holder_identity
from slotkeeper.core.holder import HolderIdentity
from slotkeeper.db.session import get_db
from slotkeeper.services.lock_service import create_lock, release_lock, verify_lock

router = APIRouter()


class CreateLockRequest(BaseModel):
    slot_id: str = Field(..., min_length=1)
    quantity: int = Field(..., description="Seats to hold; required, validated server-side")


@router.post("/locks", status_code=201)
def create_slot_lock(
    body: CreateLockRequest,
    db: Session = Depends(get_db),
    holder: HolderIdentity | None = Depends(holder_identity),
) -> dict[str, Any]:
    """
    Hold seats on a slot until expires_at (server clock, fixed TTL).
    Without a holder header a new anonymous session_token is issued; send it back on later calls.
    """
    grant = create_lock(db, body.slot_id, body.quantity, holder)
    return grant.to_dict()


@router.get("/locks/{lock_id}")
def get_lock_status(lock_id: str, db: Session = Depends(get_db)) -> dict[str, Any]:
    """Authoritative validity of a lock: {is_valid, reason, expires_at}."""
    return verify_lock(db, lock_id).to_dict()


@router.delete("/locks/{lock_id}")
def delete_lock(lock_id: str, db: Session = Depends(get_db)) -> dict[str, bool]:
    """Best-effort release. Always 200; released=false when there was nothing active to release."""
    return {"released": release_lock(db, lock_id)}
