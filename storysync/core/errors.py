"""Error taxonomy for engagement synchronization.

NetworkFailure and RejectedByServer come back from the Content API and always
trigger a rollback. NotFoundError is a local lookup miss in the comment store.
ConflictIgnored is never raised; it tags a commit whose server value differed
from the optimistic guess.
"""

from typing import Optional


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None, request_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.request_id = request_id


class NetworkFailure(AppError):
    """Request never completed (connect error, timeout, broken transport)."""
    code = "network_failure"
    status_code = 503


class RejectedByServer(AppError):
    """Server answered with a non-2xx status."""
    code = "rejected"
    status_code = 400


class NotFoundError(AppError, LookupError):
    code = "not_found"
    status_code = 404


class ConflictIgnored(AppError):
    code = "conflict_ignored"
    status_code = 409

