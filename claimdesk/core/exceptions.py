"""
Error taxonomy for the remote client, the local cache and form validation
"""
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


class ErrorCategory(str, Enum):
    """Error categories used to build user-facing messages"""
    TRANSPORT = "transport"  # Network failure, no HTTP response
    HTTP = "http"  # Non-2xx response, optional validation detail
    VALIDATION = "validation"  # Local form validation, no call made
    CACHE = "cache"  # Local cache read/write failure
    UNKNOWN = "unknown"


class ValidationErrorItem(BaseModel):
    """One offending field of an HTTP validation error body"""
    loc: List[Union[str, int]] = Field(default_factory=list)
    msg: str = ""
    type: str = ""

    @property
    def field(self) -> str:
        """Dotted field path without the request-section prefix"""
        parts = [str(p) for p in self.loc if p not in ("body", "query", "path", "form")]
        return ".".join(parts)


class ClaimDeskError(Exception):
    """Base class for every error raised by claimdesk"""
    category = ErrorCategory.UNKNOWN

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class TransportError(ClaimDeskError):
    """Network or transport failure before any HTTP response arrived"""
    category = ErrorCategory.TRANSPORT

    def __init__(self, message: str, original: Optional[Exception] = None):
        super().__init__(message)
        self.original = original


class ApiError(ClaimDeskError):
    """Non-2xx HTTP response"""
    category = ErrorCategory.HTTP

    def __init__(self, status: int, message: str, details: Any = None):
        super().__init__(message)
        self.status = status
        self.details = details

    @property
    def validation_errors(self) -> List[ValidationErrorItem]:
        """Structured validation detail, empty when the body has none"""
        if not isinstance(self.details, dict):
            return []
        detail = self.details.get("detail")
        if not isinstance(detail, list):
            return []
        items = []
        for entry in detail:
            if isinstance(entry, dict):
                items.append(ValidationErrorItem.model_validate(entry))
        return items

    def __repr__(self):
        return f"ApiError(status={self.status}, message={self.message!r})"


class FormValidationError(ClaimDeskError):
    """Required field missing or reference invalid; blocks submission"""
    category = ErrorCategory.VALIDATION

    def __init__(self, field_errors: Dict[str, str]):
        self.field_errors = dict(field_errors)
        super().__init__("; ".join(self.field_errors.values()))


class CacheError(ClaimDeskError):
    """Local cache could not be read or written"""
    category = ErrorCategory.CACHE


class EntityNotFoundError(CacheError):
    """Local cache has no entity with the requested id"""

    def __init__(self, kind: str, entity_id: str):
        super().__init__(f"{kind} {entity_id} does not exist")
        self.kind = kind
        self.entity_id = entity_id


def describe_error(error: Exception) -> str:
    """
    Build a human-readable message for a failed operation

    Validation details of an HTTP error are concatenated field by field;
    a plain string detail is used as is.

    Args:
        error: Exception caught at the operation boundary

    Returns:
        Message suitable for a notification
    """
    if isinstance(error, ApiError):
        items = error.validation_errors
        if items:
            return "; ".join(
                f"{item.field}: {item.msg}" if item.field else item.msg
                for item in items
            )
        if isinstance(error.details, dict) and isinstance(error.details.get("detail"), str):
            return error.details["detail"]
        return error.message
    if isinstance(error, ClaimDeskError):
        return error.message
    return str(error) or error.__class__.__name__
