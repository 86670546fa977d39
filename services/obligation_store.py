"""
Obligation Store

MongoDB adapter for every collection the compliance engine touches. Services
never talk to Motor directly; they call this store so the order of writes
stays in the orchestration code and the persistence details stay here.

Collections:
- notifications
- directives
- maintenance_directive_compliance
- aircraft_directive_status
- directive_history
- maintenance_logs
- subscriptions
- aircraft_counters
- equipment

CONVENTIONS:
- Every query is scoped by user_id
- Dates are stored as YYYY-MM-DD strings, timestamps as UTC datetimes
- Writes on automation paths filter on user_modified=False, so a frozen
  notification is never matched by them
- The directive summary is only ever written by with_consistency_recompute
"""

import asyncio
import logging
import uuid
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from models.counters import AIRCRAFT_COUNTERS_INDEXES, CounterSnapshot, CounterUpdate
from models.directive import (
    AircraftDirectiveStatus,
    ComplianceEvent,
    ComplianceEventStatus,
    Directive,
    DirectiveHistoryEntry,
    COMPLIANCE_EVENTS_INDEXES,
    DIRECTIVES_INDEXES,
    DIRECTIVE_HISTORY_INDEXES,
    DIRECTIVE_STATUS_INDEXES,
)
from models.equipment import Equipment, EQUIPMENT_INDEXES
from models.maintenance import MaintenanceLog, MAINTENANCE_LOGS_INDEXES
from models.notification import Notification, NotificationDraft, NOTIFICATIONS_INDEXES
from models.subscription import Subscription, SUBSCRIPTIONS_INDEXES
from services.directive_summary import summarize_compliance
from services.errors import StoreWriteError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

COLLECTION_INDEXES = {
    "notifications": NOTIFICATIONS_INDEXES,
    "directives": DIRECTIVES_INDEXES,
    "maintenance_directive_compliance": COMPLIANCE_EVENTS_INDEXES,
    "aircraft_directive_status": DIRECTIVE_STATUS_INDEXES,
    "directive_history": DIRECTIVE_HISTORY_INDEXES,
    "maintenance_logs": MAINTENANCE_LOGS_INDEXES,
    "subscriptions": SUBSCRIPTIONS_INDEXES,
    "aircraft_counters": AIRCRAFT_COUNTERS_INDEXES,
    "equipment": EQUIPMENT_INDEXES,
}

# Flag to avoid creating the indexes more than once
_indexes_ensured = False

# One lock per (user_id, directive_id) around the summary read-recompute-write
_summary_locks: Dict[Tuple[str, str], asyncio.Lock] = {}


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    global _indexes_ensured

    if _indexes_ensured:
        return

    for collection, specs in COLLECTION_INDEXES.items():
        for idx_spec in specs:
            try:
                await db[collection].create_index(
                    idx_spec["keys"],
                    unique=idx_spec.get("unique", False),
                    name=idx_spec["name"],
                )
            except PyMongoError as e:
                # Index exists with other options, or other non-fatal error
                logger.debug(f"Index {collection}.{idx_spec['name']} skip: {e}")

    _indexes_ensured = True
    logger.info("Indexes ensured for compliance collections")


def encode_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return encode_document(value.model_dump())
    if isinstance(value, dict):
        return encode_document(value)
    if isinstance(value, (list, tuple)):
        return [encode_value(v) for v in value]
    return value


def encode_document(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: encode_value(value) for key, value in data.items()}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ObligationStore:
    """
    Persistence port for the compliance engine.

    Supports equality filters, single-column sort, insert returning the row,
    upsert by unique key, and with_consistency_recompute for the directive
    summary.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    # --------------------------------------------------------
    # GENERIC HELPERS
    # --------------------------------------------------------

    async def _find_one(self, collection: str, model: Type[M], user_id: str, record_id: str) -> Optional[M]:
        doc = await self.db[collection].find_one({"_id": record_id, "user_id": user_id})
        return model.model_validate(doc) if doc else None

    async def _find(
        self,
        collection: str,
        model: Type[M],
        user_id: str,
        sort: Optional[str] = None,
        descending: bool = False,
        **filters: Any,
    ) -> List[M]:
        query = {"user_id": user_id, **encode_document(filters)}
        cursor = self.db[collection].find(query)
        if sort:
            cursor = cursor.sort(sort, DESCENDING if descending else ASCENDING)
        return [model.model_validate(doc) async for doc in cursor]

    async def _insert(self, collection: str, model: Type[M], user_id: str, data: Dict[str, Any]) -> M:
        now = utcnow()
        doc = encode_document(data)
        doc.pop("id", None)
        doc["_id"] = str(uuid.uuid4())
        doc["user_id"] = user_id
        doc["created_at"] = now
        doc["updated_at"] = now
        try:
            await self.db[collection].insert_one(doc)
        except PyMongoError as e:
            logger.error(f"Insert into {collection} failed: {e}")
            raise StoreWriteError(f"Failed to insert into {collection}") from e
        return model.model_validate(doc)

    async def _update(
        self,
        collection: str,
        model: Type[M],
        query: Dict[str, Any],
        changes: Dict[str, Any],
    ) -> Optional[M]:
        update = encode_document(changes)
        update["updated_at"] = utcnow()
        try:
            doc = await self.db[collection].find_one_and_update(
                encode_document(query),
                {"$set": update},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.error(f"Update of {collection} {query.get('_id')} failed: {e}")
            raise StoreWriteError(f"Failed to update {collection}") from e
        return model.model_validate(doc) if doc else None

    async def _delete(self, collection: str, query: Dict[str, Any]) -> int:
        try:
            result = await self.db[collection].delete_many(encode_document(query))
        except PyMongoError as e:
            logger.error(f"Delete from {collection} failed: {e}")
            raise StoreWriteError(f"Failed to delete from {collection}") from e
        return result.deleted_count

    # --------------------------------------------------------
    # NOTIFICATIONS
    # --------------------------------------------------------

    async def get_notification(self, user_id: str, notification_id: str) -> Optional[Notification]:
        return await self._find_one("notifications", Notification, user_id, notification_id)

    async def list_notifications(
        self, user_id: str, sort: Optional[str] = None, descending: bool = False, **filters: Any
    ) -> List[Notification]:
        return await self._find("notifications", Notification, user_id, sort, descending, **filters)

    async def insert_notification(self, user_id: str, draft: NotificationDraft) -> Notification:
        data = draft.model_dump()
        data["is_completed"] = False
        data["completed_at"] = None
        return await self._insert("notifications", Notification, user_id, data)

    async def update_notification(
        self, user_id: str, notification_id: str, changes: Dict[str, Any]
    ) -> Optional[Notification]:
        """User-driven update. Automation uses update_managed_notification."""
        return await self._update(
            "notifications", Notification, {"_id": notification_id, "user_id": user_id}, changes
        )

    async def update_managed_notification(
        self, user_id: str, notification_id: str, changes: Dict[str, Any]
    ) -> Optional[Notification]:
        """Update unless the row is frozen; returns None if nothing matched."""
        return await self._update(
            "notifications",
            Notification,
            {"_id": notification_id, "user_id": user_id, "user_modified": False},
            changes,
        )

    async def mark_notification_completed(
        self, user_id: str, notification_id: str, completed_at: datetime
    ) -> Optional[Notification]:
        """Close an open notification; None if it does not exist or is already closed."""
        return await self._update(
            "notifications",
            Notification,
            {"_id": notification_id, "user_id": user_id, "is_completed": False},
            {"is_completed": True, "completed_at": completed_at},
        )

    async def delete_notification(self, user_id: str, notification_id: str) -> bool:
        return await self._delete("notifications", {"_id": notification_id, "user_id": user_id}) > 0

    async def delete_notifications(self, user_id: str, **filters: Any) -> int:
        """Unconditional delete, frozen rows included."""
        return await self._delete("notifications", {"user_id": user_id, **filters})

    async def delete_managed_notifications(self, user_id: str, **filters: Any) -> int:
        return await self._delete("notifications", {"user_id": user_id, **filters, "user_modified": False})

    # --------------------------------------------------------
    # DIRECTIVES
    # --------------------------------------------------------

    async def get_directive(self, user_id: str, directive_id: str) -> Optional[Directive]:
        return await self._find_one("directives", Directive, user_id, directive_id)

    async def list_directives(self, user_id: str, **filters: Any) -> List[Directive]:
        return await self._find("directives", Directive, user_id, "directive_code", **filters)

    async def insert_directive(self, user_id: str, data: Dict[str, Any]) -> Directive:
        return await self._insert("directives", Directive, user_id, data)

    async def update_directive(self, user_id: str, directive_id: str, changes: Dict[str, Any]) -> Optional[Directive]:
        return await self._update("directives", Directive, {"_id": directive_id, "user_id": user_id}, changes)

    async def delete_directive(self, user_id: str, directive_id: str) -> bool:
        deleted = await self._delete("directives", {"_id": directive_id, "user_id": user_id}) > 0
        _summary_locks.pop((user_id, directive_id), None)
        return deleted

    # --------------------------------------------------------
    # COMPLIANCE EVENTS
    # --------------------------------------------------------

    async def get_compliance_event(self, user_id: str, event_id: str) -> Optional[ComplianceEvent]:
        return await self._find_one("maintenance_directive_compliance", ComplianceEvent, user_id, event_id)

    async def list_compliance_events(self, user_id: str, descending: bool = True, **filters: Any) -> List[ComplianceEvent]:
        return await self._find(
            "maintenance_directive_compliance", ComplianceEvent, user_id, "compliance_date", descending, **filters
        )

    async def insert_compliance_event(self, user_id: str, data: Dict[str, Any]) -> ComplianceEvent:
        return await self._insert("maintenance_directive_compliance", ComplianceEvent, user_id, data)

    async def update_compliance_event(
        self, user_id: str, event_id: str, changes: Dict[str, Any]
    ) -> Optional[ComplianceEvent]:
        return await self._update(
            "maintenance_directive_compliance", ComplianceEvent, {"_id": event_id, "user_id": user_id}, changes
        )

    async def delete_compliance_event(self, user_id: str, event_id: str) -> bool:
        return await self._delete("maintenance_directive_compliance", {"_id": event_id, "user_id": user_id}) > 0

    async def delete_compliance_events(self, user_id: str, **filters: Any) -> int:
        return await self._delete("maintenance_directive_compliance", {"user_id": user_id, **filters})

    # --------------------------------------------------------
    # DIRECTIVE SUMMARY
    # --------------------------------------------------------

    async def get_directive_status(self, user_id: str, directive_id: str) -> Optional[AircraftDirectiveStatus]:
        doc = await self.db.aircraft_directive_status.find_one({"user_id": user_id, "directive_id": directive_id})
        return AircraftDirectiveStatus.model_validate(doc) if doc else None

    async def delete_directive_status(self, user_id: str, directive_id: str) -> int:
        return await self._delete("aircraft_directive_status", {"user_id": user_id, "directive_id": directive_id})

    async def with_consistency_recompute(self, user_id: str, directive: Directive) -> AircraftDirectiveStatus:
        """
        Rebuild the (user, directive) summary from the Complied events that
        currently exist and upsert it. Serialised per (user, directive).
        """
        key = (user_id, directive.id)
        lock = _summary_locks.setdefault(key, asyncio.Lock())

        async with lock:
            events = await self.list_compliance_events(
                user_id,
                directive_id=directive.id,
                compliance_status=ComplianceEventStatus.COMPLIED,
            )
            existing = await self.get_directive_status(user_id, directive.id)
            summary = summarize_compliance(directive, events, existing)

            doc = encode_document(summary.model_dump(exclude={"id"}))
            doc["updated_at"] = utcnow()
            try:
                if existing:
                    await self.db.aircraft_directive_status.replace_one({"_id": existing.id}, doc)
                    doc["_id"] = existing.id
                else:
                    doc["_id"] = str(uuid.uuid4())
                    await self.db.aircraft_directive_status.insert_one(doc)
            except PyMongoError as e:
                logger.error(f"Summary recompute failed for directive {directive.id}: {e}")
                raise StoreWriteError("Failed to write directive summary") from e

        logger.info(
            f"Recomputed summary | directive={directive.id} | events={len(events)} | "
            f"status={summary.compliance_status.value}"
        )
        return AircraftDirectiveStatus.model_validate(doc)

    # --------------------------------------------------------
    # DIRECTIVE HISTORY (append-only)
    # --------------------------------------------------------

    async def append_history(self, entry: DirectiveHistoryEntry) -> DirectiveHistoryEntry:
        data = entry.model_dump(exclude={"id", "user_id", "created_at"})
        return await self._insert("directive_history", DirectiveHistoryEntry, entry.user_id, data)

    async def list_history(self, user_id: str, **filters: Any) -> List[DirectiveHistoryEntry]:
        return await self._find("directive_history", DirectiveHistoryEntry, user_id, "created_at", True, **filters)

    # --------------------------------------------------------
    # MAINTENANCE LOGS
    # --------------------------------------------------------

    async def get_maintenance_log(self, user_id: str, log_id: str) -> Optional[MaintenanceLog]:
        return await self._find_one("maintenance_logs", MaintenanceLog, user_id, log_id)

    async def list_maintenance_logs(self, user_id: str, **filters: Any) -> List[MaintenanceLog]:
        return await self._find("maintenance_logs", MaintenanceLog, user_id, "date_performed", True, **filters)

    async def insert_maintenance_log(self, user_id: str, data: Dict[str, Any]) -> MaintenanceLog:
        return await self._insert("maintenance_logs", MaintenanceLog, user_id, data)

    async def update_maintenance_log(
        self, user_id: str, log_id: str, changes: Dict[str, Any]
    ) -> Optional[MaintenanceLog]:
        return await self._update("maintenance_logs", MaintenanceLog, {"_id": log_id, "user_id": user_id}, changes)

    async def delete_maintenance_log(self, user_id: str, log_id: str) -> bool:
        return await self._delete("maintenance_logs", {"_id": log_id, "user_id": user_id}) > 0

    # --------------------------------------------------------
    # SUBSCRIPTIONS
    # --------------------------------------------------------

    async def get_subscription(self, user_id: str, subscription_id: str) -> Optional[Subscription]:
        return await self._find_one("subscriptions", Subscription, user_id, subscription_id)

    async def insert_subscription(self, user_id: str, data: Dict[str, Any]) -> Subscription:
        return await self._insert("subscriptions", Subscription, user_id, data)

    async def update_subscription(
        self, user_id: str, subscription_id: str, changes: Dict[str, Any]
    ) -> Optional[Subscription]:
        return await self._update(
            "subscriptions", Subscription, {"_id": subscription_id, "user_id": user_id}, changes
        )

    async def delete_subscription(self, user_id: str, subscription_id: str) -> bool:
        return await self._delete("subscriptions", {"_id": subscription_id, "user_id": user_id}) > 0

    # --------------------------------------------------------
    # EQUIPMENT
    # --------------------------------------------------------

    async def get_equipment(self, user_id: str, equipment_id: str) -> Optional[Equipment]:
        return await self._find_one("equipment", Equipment, user_id, equipment_id)

    async def list_equipment(self, user_id: str, **filters: Any) -> List[Equipment]:
        return await self._find("equipment", Equipment, user_id, "created_at", True, **filters)

    async def insert_equipment(self, user_id: str, data: Dict[str, Any]) -> Equipment:
        return await self._insert("equipment", Equipment, user_id, data)

    async def delete_equipment(self, user_id: str, equipment_id: str) -> bool:
        return await self._delete("equipment", {"_id": equipment_id, "user_id": user_id}) > 0

    # --------------------------------------------------------
    # COUNTERS
    # --------------------------------------------------------

    async def get_counters(self, user_id: str, aircraft_id: str) -> CounterSnapshot:
        doc = await self.db.aircraft_counters.find_one({"user_id": user_id, "aircraft_id": aircraft_id})
        if not doc:
            return CounterSnapshot()
        values = {field: doc.get(field) or 0.0 for field in CounterSnapshot.model_fields}
        return CounterSnapshot(**values)

    async def update_counters(self, user_id: str, aircraft_id: str, update: CounterUpdate) -> CounterSnapshot:
        changes = {k: v for k, v in update.model_dump().items() if v is not None}
        changes["updated_at"] = utcnow()
        try:
            await self.db.aircraft_counters.update_one(
                {"user_id": user_id, "aircraft_id": aircraft_id},
                {"$set": changes},
                upsert=True,
            )
        except PyMongoError as e:
            logger.error(f"Counter update failed for aircraft {aircraft_id}: {e}")
            raise StoreWriteError("Failed to update counters") from e
        return await self.get_counters(user_id, aircraft_id)
