"""Domain error types.

Services raise these; ``main.py`` turns them into JSON responses. Delivery
problems are never raised: they are recorded on ``Notification.result`` as
one of the ``DeliveryWarning`` values.
"""

from __future__ import annotations

from enum import Enum


class AppError(Exception):
    """Base domain error carrying an HTTP status and a machine-readable code."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        if code:
            self.code = code
        super().__init__(message)


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class PermissionDeniedError(AppError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: str, code: str | None = None):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} {identifier} not found", code)


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"


class UploadError(AppError):
    """Blob-store failure inside the report saga, raised after compensation.

    The triggering exception is kept as ``__cause__`` and ``cause``.
    """

    status_code = 502
    code = "UPLOAD_FAILED"

    def __init__(self, message: str, cause: BaseException | None = None):
        self.cause = cause
        super().__init__(message)


class DeliveryWarning(str, Enum):
    NO_TARGETS = "no-targets"
    NO_TOKENS_FOR_USER = "no-tokens-for-user"
    PARTIAL_FAILURE = "partial-failure"
