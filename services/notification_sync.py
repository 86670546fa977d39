"""
Linked notification reconciliation.

Generated notifications follow their parent record (directive, maintenance
log, subscription, equipment) while they are Managed. Once the user edits one
it is Frozen and automation leaves it alone: no update, no implicit delete.

All automated write paths go through reconcile_linked_notifications or
cascade_parent_delete, which only ever touch Managed rows.
"""

import logging
from typing import Dict, List, Optional

from pydantic import BaseModel

from models.notification import (
    LINK_FIELDS,
    ManagementState,
    Notification,
    NotificationBasis,
    NotificationDraft,
)
from services.errors import FrozenNotificationError
from services.obligation_store import ObligationStore

logger = logging.getLogger(__name__)


class SyncResult(BaseModel):
    """Outcome of a reconcile pass over one parent's notifications"""
    inserted: List[str] = []
    updated: List[str] = []
    deleted: int = 0
    skipped_frozen: List[str] = []


def ensure_managed(notification: Notification) -> None:
    if notification.management == ManagementState.FROZEN:
        raise FrozenNotificationError(notification.id)


def draft_changes(draft: NotificationDraft) -> dict:
    """Fields a reconcile pass may overwrite on an existing managed row."""
    return draft.model_dump(exclude={"user_modified", *LINK_FIELDS})


async def _delete_managed(store: ObligationStore, user_id: str, notification: Notification) -> int:
    ensure_managed(notification)
    return await store.delete_managed_notifications(user_id, _id=notification.id)


async def reconcile_linked_notifications(
    store: ObligationStore,
    user_id: str,
    link_field: str,
    link_id: str,
    desired: Dict[NotificationBasis, Optional[NotificationDraft]],
) -> SyncResult:
    """
    Bring the open notifications linked to one parent in line with the
    desired state, one row per basis:

    - needed, none open            -> insert
    - needed, managed row open     -> update it in place
    - not needed, managed row open -> delete it
    - frozen rows                  -> left untouched; they hold the basis
    """
    if link_field not in LINK_FIELDS:
        raise ValueError(f"Unknown link field: {link_field}")

    existing = await store.list_notifications(
        user_id, sort="created_at", is_completed=False, **{link_field: link_id}
    )
    result = SyncResult()

    for basis in NotificationBasis:
        rows = [n for n in existing if n.notification_basis == basis]
        frozen = [n for n in rows if n.management == ManagementState.FROZEN]
        managed = [n for n in rows if n.management == ManagementState.MANAGED]
        draft = desired.get(basis)

        if frozen:
            result.skipped_frozen.extend(n.id for n in frozen)
            logger.info(
                f"Skipping frozen notifications | {link_field}={link_id} | basis={basis.value} | "
                f"ids={[n.id for n in frozen]}"
            )

        if draft is None or frozen:
            # Nothing wanted, or the user already owns this basis
            for n in managed:
                result.deleted += await _delete_managed(store, user_id, n)
            continue

        if managed:
            keep, extras = managed[0], managed[1:]
            ensure_managed(keep)
            updated = await store.update_managed_notification(user_id, keep.id, draft_changes(draft))
            if updated is not None:
                result.updated.append(updated.id)
            for n in extras:
                result.deleted += await _delete_managed(store, user_id, n)
            continue

        draft = draft.model_copy(update={link_field: link_id, "user_modified": False})
        created = await store.insert_notification(user_id, draft)
        result.inserted.append(created.id)

    logger.info(
        f"Reconciled notifications | {link_field}={link_id} | inserted={len(result.inserted)} | "
        f"updated={len(result.updated)} | deleted={result.deleted} | frozen={len(result.skipped_frozen)}"
    )
    return result


async def cascade_parent_delete(store: ObligationStore, user_id: str, link_field: str, link_id: str) -> int:
    """Remove the managed notifications of a deleted parent. Frozen rows survive."""
    if link_field not in LINK_FIELDS:
        raise ValueError(f"Unknown link field: {link_field}")
    deleted = await store.delete_managed_notifications(user_id, **{link_field: link_id})
    logger.info(f"Cascade delete | {link_field}={link_id} | notifications_deleted={deleted}")
    return deleted
