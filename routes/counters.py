"""
Aircraft Counter Routes
"""

from fastapi import APIRouter, Depends, HTTPException
from database.mongodb import get_database
from services.auth_deps import get_current_user
from services.errors import ComplianceEngineError, to_http_exception
from services.obligation_store import ObligationStore
from models.counters import CounterUpdate
from models.user import User
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/counters", tags=["counters"])


@router.get("/{aircraft_id}", response_model=dict)
async def get_counters(
    aircraft_id: str,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    """Current counters of an aircraft; unknown values read as 0"""
    snapshot = await ObligationStore(db).get_counters(current_user.id, aircraft_id)
    return {"aircraft_id": aircraft_id, **snapshot.model_dump()}


@router.put("/{aircraft_id}", response_model=dict)
async def update_counters(
    aircraft_id: str,
    update: CounterUpdate,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    """Update one or more counters of an aircraft"""
    if not update.model_dump(exclude_none=True):
        raise HTTPException(status_code=400, detail="No counter value provided")
    try:
        snapshot = await ObligationStore(db).update_counters(current_user.id, aircraft_id, update)
    except ComplianceEngineError as e:
        raise to_http_exception(e)

    logger.info(f"Counters updated | aircraft={aircraft_id} | user={current_user.id}")
    return {"aircraft_id": aircraft_id, **snapshot.model_dump()}
