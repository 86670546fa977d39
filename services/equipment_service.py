"""
Equipment Service

Equipment records do not generate reminders themselves, but users attach
notifications to them (warranty expiry, calibration, battery dates). Deleting
the equipment removes its managed notifications; frozen ones survive.
"""

import logging
from typing import List

from pydantic import BaseModel

from models.equipment import Equipment, EquipmentCreate
from services.errors import RecordNotFoundError
from services.notification_sync import cascade_parent_delete
from services.obligation_store import ObligationStore

logger = logging.getLogger(__name__)


class EquipmentDeleteResult(BaseModel):
    deleted: bool
    notifications_deleted: int = 0
    warnings: List[str] = []


class EquipmentService:

    def __init__(self, store: ObligationStore):
        self.store = store

    async def create_equipment(self, user_id: str, data: EquipmentCreate) -> Equipment:
        equipment = await self.store.insert_equipment(user_id, data.model_dump())
        logger.info(f"Created equipment {equipment.id} ({equipment.name}) for user {user_id}")
        return equipment

    async def get_equipment(self, user_id: str, equipment_id: str) -> Equipment:
        equipment = await self.store.get_equipment(user_id, equipment_id)
        if equipment is None:
            raise RecordNotFoundError("equipment", equipment_id)
        return equipment

    async def delete_equipment(self, user_id: str, equipment_id: str) -> EquipmentDeleteResult:
        if not await self.store.delete_equipment(user_id, equipment_id):
            raise RecordNotFoundError("equipment", equipment_id)
        logger.info(f"Deleted equipment {equipment_id} for user {user_id}")

        result = EquipmentDeleteResult(deleted=True)
        try:
            result.notifications_deleted = await cascade_parent_delete(
                self.store, user_id, "equipment_id", equipment_id
            )
        except Exception as e:
            logger.error(f"Notification cascade for equipment {equipment_id} failed: {e}")
            result.warnings.append("Equipment deleted but its notifications could not be removed")
        return result
