"""
Equipment Routes
"""

from fastapi import APIRouter, Depends, status
from typing import List
from database.mongodb import get_database
from services.auth_deps import get_current_user
from services.equipment_service import EquipmentService
from services.errors import ComplianceEngineError, to_http_exception
from services.obligation_store import ObligationStore
from models.equipment import EquipmentCreate
from models.user import User
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/equipment", tags=["equipment"])


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_equipment(
    equipment: EquipmentCreate,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    created = await EquipmentService(ObligationStore(db)).create_equipment(current_user.id, equipment)
    return created.model_dump()


@router.get("/aircraft/{aircraft_id}", response_model=List[dict])
async def list_equipment(
    aircraft_id: str,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    items = await ObligationStore(db).list_equipment(current_user.id, aircraft_id=aircraft_id)
    return [item.model_dump() for item in items]


@router.get("/{equipment_id}", response_model=dict)
async def get_equipment(
    equipment_id: str,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    try:
        equipment = await EquipmentService(ObligationStore(db)).get_equipment(current_user.id, equipment_id)
    except ComplianceEngineError as e:
        raise to_http_exception(e)
    return equipment.model_dump()


@router.delete("/{equipment_id}", response_model=dict)
async def delete_equipment(
    equipment_id: str,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    """Delete equipment and its managed notifications"""
    try:
        result = await EquipmentService(ObligationStore(db)).delete_equipment(current_user.id, equipment_id)
    except ComplianceEngineError as e:
        raise to_http_exception(e)
    return result.model_dump()
