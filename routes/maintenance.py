"""
Maintenance Log Routes
"""

from fastapi import APIRouter, Depends, status
from typing import List
from database.mongodb import get_database
from services.auth_deps import get_current_user
from services.errors import ComplianceEngineError, RecordNotFoundError, to_http_exception
from services.maintenance_sync import MaintenanceLogService
from services.obligation_store import ObligationStore
from models.maintenance import MaintenanceLogCreate
from models.user import User
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/maintenance", tags=["maintenance"])


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_maintenance_log(
    log: MaintenanceLogCreate,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    """Create a maintenance log with its reminders and directive compliance"""
    try:
        result = await MaintenanceLogService(ObligationStore(db)).create_log(current_user.id, log)
    except ComplianceEngineError as e:
        raise to_http_exception(e)
    return result.model_dump()


@router.get("/aircraft/{aircraft_id}", response_model=List[dict])
async def list_maintenance_logs(
    aircraft_id: str,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    """Maintenance logs of an aircraft, most recent first"""
    logs = await ObligationStore(db).list_maintenance_logs(current_user.id, aircraft_id=aircraft_id)
    return [log.model_dump() for log in logs]


@router.get("/{log_id}", response_model=dict)
async def get_maintenance_log(
    log_id: str,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    log = await ObligationStore(db).get_maintenance_log(current_user.id, log_id)
    if log is None:
        raise to_http_exception(RecordNotFoundError("maintenance_logs", log_id))
    return log.model_dump()


@router.put("/{log_id}", response_model=dict)
async def update_maintenance_log(
    log_id: str,
    log: MaintenanceLogCreate,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    try:
        result = await MaintenanceLogService(ObligationStore(db)).update_log(current_user.id, log_id, log)
    except ComplianceEngineError as e:
        raise to_http_exception(e)
    return result.model_dump()


@router.delete("/{log_id}", response_model=dict)
async def delete_maintenance_log(
    log_id: str,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    """Delete a log, its managed reminders and its compliance events"""
    try:
        result = await MaintenanceLogService(ObligationStore(db)).delete_log(current_user.id, log_id)
    except ComplianceEngineError as e:
        raise to_http_exception(e)
    return result.model_dump()
