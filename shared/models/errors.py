"""Error taxonomy shared by the clients, the core services and the API layer.

Every error raised on purpose by this service derives from ServiceError and
carries a stable error code and the HTTP status the API layer answers with.

Usage:
    from shared.models.errors import NotFoundError, UpstreamError

    raise NotFoundError("Document not found", resource_type="document", resource_id=document_id)
    raise UpstreamError("Blob upload failed", document_id=document_id, blob_keys=keys)
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes exposed in API error bodies."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    EXTRACTION_ERROR = "EXTRACTION_ERROR"


class ServiceError(Exception):
    """Base class for all expected service errors."""

    code: ErrorCode = ErrorCode.UPSTREAM_ERROR
    status_code: int = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(ServiceError):
    """Bad or missing input (title, files, query)."""

    code = ErrorCode.VALIDATION_ERROR
    status_code = 400


class UnauthorizedError(ServiceError):
    """No identity was forwarded by the authentication collaborator."""

    code = ErrorCode.UNAUTHORIZED
    status_code = 401


class ForbiddenError(ServiceError):
    """The caller is authenticated but not allowed to perform the operation."""

    code = ErrorCode.FORBIDDEN
    status_code = 403


class NotFoundError(ServiceError):
    """A document or attachment does not exist."""

    code = ErrorCode.NOT_FOUND
    status_code = 404

    def __init__(self, message: str, resource_type: str | None = None, resource_id: str | None = None) -> None:
        details = {}
        if resource_type:
            details["resource_type"] = resource_type
        if resource_id:
            details["resource_id"] = resource_id
        super().__init__(message, details=details)
        self.resource_type = resource_type
        self.resource_id = resource_id


class UpstreamError(ServiceError):
    """Blob store or metadata store I/O failed (including deadline expiry).

    Carries the document id and the blob keys involved so that the failure can
    be reconciled manually or by a sweep.
    """

    code = ErrorCode.UPSTREAM_ERROR
    status_code = 500

    def __init__(self, message: str, document_id: str | None = None, blob_keys: list[str] | None = None) -> None:
        details: dict[str, Any] = {}
        if document_id:
            details["document_id"] = document_id
        if blob_keys:
            details["blob_keys"] = list(blob_keys)
        super().__init__(message, details=details)
        self.document_id = document_id
        self.blob_keys = list(blob_keys or [])


class BlobNotFoundError(NotFoundError):
    """The blob store has no object under the requested key."""

    def __init__(self, blob_key: str) -> None:
        super().__init__(f"Blob '{blob_key}' not found", resource_type="blob", resource_id=blob_key)
        self.blob_key = blob_key


class BlobKeyConflictError(UpstreamError):
    """A conditional put found an existing object under the key."""

    def __init__(self, blob_key: str) -> None:
        super().__init__(f"Blob key '{blob_key}' already exists", blob_keys=[blob_key])
        self.blob_key = blob_key


class ExtractionError(ServiceError):
    """Text extraction for a single attachment failed. Logged, never surfaced."""

    code = ErrorCode.EXTRACTION_ERROR
    status_code = 500
