"""
Subscription Routes
"""

from fastapi import APIRouter, Depends, status
from database.mongodb import get_database
from services.auth_deps import get_current_user
from services.errors import ComplianceEngineError, RecordNotFoundError, to_http_exception
from services.obligation_store import ObligationStore
from services.subscription_sync import SubscriptionService
from models.subscription import SubscriptionCreate
from models.user import User
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_subscription(
    subscription: SubscriptionCreate,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    """Create a subscription; recurring ones get a reminder notification"""
    try:
        result = await SubscriptionService(ObligationStore(db)).create_subscription(current_user.id, subscription)
    except ComplianceEngineError as e:
        raise to_http_exception(e)
    return result.model_dump()


@router.get("/{subscription_id}", response_model=dict)
async def get_subscription(
    subscription_id: str,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    subscription = await ObligationStore(db).get_subscription(current_user.id, subscription_id)
    if subscription is None:
        raise to_http_exception(RecordNotFoundError("subscriptions", subscription_id))
    return subscription.model_dump()


@router.put("/{subscription_id}", response_model=dict)
async def update_subscription(
    subscription_id: str,
    subscription: SubscriptionCreate,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    try:
        result = await SubscriptionService(ObligationStore(db)).update_subscription(
            current_user.id, subscription_id, subscription
        )
    except ComplianceEngineError as e:
        raise to_http_exception(e)
    return result.model_dump()


@router.delete("/{subscription_id}", response_model=dict)
async def delete_subscription(
    subscription_id: str,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    try:
        removed = await SubscriptionService(ObligationStore(db)).delete_subscription(
            current_user.id, subscription_id
        )
    except ComplianceEngineError as e:
        raise to_http_exception(e)
    return {"message": "Subscription deleted successfully", "reminders_deleted": removed}
