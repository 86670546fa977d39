"""
Directive Routes

Directives, their compliance events, the per-directive status summary and
the append-only history.
"""

from fastapi import APIRouter, Depends, status
from typing import List, Optional
from database.mongodb import get_database
from services.auth_deps import get_current_user
from services.directive_compliance import DirectiveComplianceService
from services.directive_lifecycle import DirectiveLifecycle
from services.errors import ComplianceEngineError, RecordNotFoundError, to_http_exception
from services.obligation_store import ObligationStore
from models.directive import ComplianceSaveRequest, DirectiveCreate, DirectiveUpdate
from models.user import User
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/directives", tags=["directives"])


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_directive(
    directive: DirectiveCreate,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    """Create a directive and generate its notification"""
    try:
        result = await DirectiveLifecycle(ObligationStore(db)).create_directive(current_user.id, directive)
    except ComplianceEngineError as e:
        raise to_http_exception(e)
    return result.model_dump()


@router.get("", response_model=List[dict])
async def list_directives(
    aircraft_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    filters = {"aircraft_id": aircraft_id} if aircraft_id else {}
    directives = await ObligationStore(db).list_directives(current_user.id, **filters)
    return [d.model_dump() for d in directives]


@router.get("/history", response_model=List[dict])
async def get_directive_history(
    aircraft_id: Optional[str] = None,
    directive_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    """Create / Delete / Compliance actions, newest first"""
    filters = {}
    if aircraft_id:
        filters["aircraft_id"] = aircraft_id
    if directive_id:
        filters["directive_id"] = directive_id
    entries = await ObligationStore(db).list_history(current_user.id, **filters)
    return [e.model_dump() for e in entries]


@router.delete("/events/{event_id}", response_model=dict)
async def delete_compliance_event(
    event_id: str,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    """Delete a compliance event and rebuild the directive summary"""
    try:
        result = await DirectiveComplianceService(ObligationStore(db)).delete_compliance_event(
            current_user.id, event_id
        )
    except ComplianceEngineError as e:
        raise to_http_exception(e)
    return result.model_dump()


@router.get("/{directive_id}", response_model=dict)
async def get_directive(
    directive_id: str,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    directive = await ObligationStore(db).get_directive(current_user.id, directive_id)
    if directive is None:
        raise to_http_exception(RecordNotFoundError("directives", directive_id))
    return directive.model_dump()


@router.put("/{directive_id}", response_model=dict)
async def update_directive(
    directive_id: str,
    update: DirectiveUpdate,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    """Edit a directive and reconcile its notification"""
    try:
        result = await DirectiveLifecycle(ObligationStore(db)).update_directive(
            current_user.id, directive_id, update
        )
    except ComplianceEngineError as e:
        raise to_http_exception(e)
    return result.model_dump()


@router.delete("/{directive_id}", response_model=dict)
async def delete_directive(
    directive_id: str,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    try:
        warnings = await DirectiveLifecycle(ObligationStore(db)).delete_directive(current_user.id, directive_id)
    except ComplianceEngineError as e:
        raise to_http_exception(e)
    return {"message": "Directive deleted successfully", "warnings": warnings}


@router.post("/{directive_id}/compliance", response_model=dict)
async def save_compliance(
    directive_id: str,
    request: ComplianceSaveRequest,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    """Record or edit a compliance event and propagate it"""
    try:
        result = await DirectiveComplianceService(ObligationStore(db)).save_compliance(
            current_user.id, directive_id, request
        )
    except ComplianceEngineError as e:
        raise to_http_exception(e)
    return result.model_dump()


@router.get("/{directive_id}/events", response_model=List[dict])
async def list_compliance_events(
    directive_id: str,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    """Compliance events of a directive, most recent first"""
    events = await ObligationStore(db).list_compliance_events(current_user.id, directive_id=directive_id)
    return [e.model_dump() for e in events]


@router.get("/{directive_id}/summary", response_model=dict)
async def get_directive_summary(
    directive_id: str,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    summary = await ObligationStore(db).get_directive_status(current_user.id, directive_id)
    if summary is None:
        raise to_http_exception(RecordNotFoundError("aircraft_directive_status", directive_id))
    return summary.model_dump()
