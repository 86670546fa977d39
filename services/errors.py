"""Exceptions raised by the compliance engine services"""

from fastapi import HTTPException, status


class ComplianceEngineError(Exception):
    """Base class for compliance engine failures"""


class ObligationValidationError(ComplianceEngineError):
    """Input rejected before any write happened"""


class RecordNotFoundError(ComplianceEngineError):
    def __init__(self, collection: str, record_id: str):
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"{collection} record {record_id} not found")


class StoreWriteError(ComplianceEngineError):
    """The store rejected the write of the primary record of an operation"""


class FrozenNotificationError(ComplianceEngineError):
    """Automation attempted to alter a notification edited by the user"""

    def __init__(self, notification_id: str):
        self.notification_id = notification_id
        super().__init__(f"Notification {notification_id} was modified by the user and is frozen")


def to_http_exception(error: ComplianceEngineError) -> HTTPException:
    """Map a service error onto the HTTP status the routes return."""
    if isinstance(error, RecordNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, FrozenNotificationError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(error, StoreWriteError):
        code = status.HTTP_502_BAD_GATEWAY
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=str(error))
