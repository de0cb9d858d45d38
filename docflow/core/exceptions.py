"""Error taxonomy for workflow runs.

Every error raised by the orchestrator carries the HTTP status the API
layer should answer with, so routers only translate, never classify.
"""

from typing import Optional


class WorkflowError(Exception):
    """Base class for all workflow errors."""

    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(WorkflowError):
    """Raised when a request is missing a required field or is inconsistent."""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(WorkflowError):
    """Raised when a document or workflow definition does not exist."""

    status_code = 404


class ConflictError(WorkflowError):
    """Raised on uniqueness violations and lost concurrent transitions."""

    status_code = 409

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class CollaboratorError(WorkflowError):
    """Raised when an external service call fails or answers non-2xx."""

    status_code = 502

    def __init__(
        self,
        message: str,
        *,
        service: str,
        upstream_status: Optional[int] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.service = service
        self.upstream_status = upstream_status
        self.retryable = retryable


class ResolverError(CollaboratorError):
    """Raised when a group lookup fails while resolving a transition."""


class InternalError(WorkflowError):
    """Raised for unexpected failures inside the transactional phase."""

    status_code = 500

    def __init__(self, message: str, remote_applied: bool = False):
        super().__init__(message)
        # True when remote effects already happened before the failure
        self.remote_applied = remote_applied
