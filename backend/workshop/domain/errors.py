# backend/workshop/domain/errors.py
"""
Typed failures returned by the core.

PreconditionFailed  a state-machine guard rejected the request, nothing was written
ValidationError     caller input is inconsistent, rejected before any write
NotFound            a referenced row does not exist

Re-posting an entry that is already in the ledger is not an error; posting
functions report it as a duplicate and move on.
"""
from typing import Any, Dict, Optional


class WorkshopError(Exception):
    status_code = 400
    code = "error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_meta(self) -> Dict[str, Any]:
        meta: Dict[str, Any] = {"code": self.code}
        meta.update(self.details)
        return meta


class PreconditionFailed(WorkshopError):
    status_code = 409
    code = "precondition_failed"

    def __init__(self, message: str, missing: Optional[str] = None, **details: Any):
        super().__init__(message, **details)
        self.missing = missing
        if missing:
            self.details["missing"] = missing


class ValidationError(WorkshopError):
    status_code = 422
    code = "validation_error"


class NotFound(WorkshopError):
    status_code = 404
    code = "not_found"

    def __init__(self, entity: str, ref: Any):
        super().__init__(f"{entity} not found: {ref}", entity=entity, ref=ref)
        self.entity = entity
        self.ref = ref
