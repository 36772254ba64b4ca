from typing import List, Optional


class AAPError(Exception):
    """Base exception for errors raised while talking to the automation platform"""

    def __init__(self, message: str, details: dict = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class TransportError(AAPError):
    """Raised when a request could not reach the remote service"""


class PermissionDeniedError(AAPError):
    """Raised when the remote service answers 403"""

    def __init__(
        self,
        message: str = "Insufficient privileges. Please contact your administrator.",
        details: dict = None,
    ) -> None:
        super().__init__(message, details)


class RequestValidationError(AAPError):
    """Raised when the remote service rejects a request with a structured body"""


class RequestFailedError(AAPError):
    """Raised for any other non-2xx answer"""

    def __init__(self, message: str, status_code: Optional[int] = None, details: dict = None) -> None:
        super().__init__(message, details)
        self.status_code = status_code


class NotInitializedError(AAPError):
    """Raised when a connector is used before a catalog connection is attached"""

    def __init__(self, message: str = "Not initialized", details: dict = None) -> None:
        super().__init__(message, details)


class ReconciliationRejectedError(AAPError):
    """Raised when a user does not qualify for catalog inclusion"""

    def __init__(self, message: str, username: str = None, user_id: int = None) -> None:
        super().__init__(message, {"username": username, "user_id": user_id})
        self.username = username
        self.user_id = user_id


class JobExecutionError(AAPError):
    """Raised when a launched job ends in a non-successful terminal status"""

    def __init__(self, diagnosis: str, job_id: int = None, status: str = None) -> None:
        super().__init__(f"Job execution failed due to {diagnosis}", {"job_id": job_id, "status": status})
        self.diagnosis = diagnosis
        self.job_id = job_id
        self.status = status


class JobTemplateNotFoundError(AAPError):
    """Raised when a job template lookup returns nothing"""


class DuplicateCredentialTypeError(AAPError):
    """Raised when a launch request carries several credentials of one type"""

    def __init__(self, credential_types: List[str]) -> None:
        super().__init__(
            "Cannot assign multiple credentials of the same type. "
            f"Duplicated credential types are: {', '.join(credential_types)}",
            {"credential_types": credential_types},
        )
        self.credential_types = credential_types


class ResourceCreationError(AAPError):
    """Raised when a created resource ends in a failed state"""


class AggregationError(AAPError):
    """Raised when the organization aggregation fails, partial results are discarded"""

    def __init__(self, message: str, endpoint: str) -> None:
        super().__init__(message, {"endpoint": endpoint})
        self.endpoint = endpoint


class PaginationLimitError(AAPError):
    """Raised when a collection exceeds the configured page budget"""


class JobPollTimeoutError(AAPError):
    """Raised when a job stays non-terminal longer than the configured poll duration"""

    def __init__(self, message: str, job_id: int = None) -> None:
        super().__init__(message, {"job_id": job_id})
        self.job_id = job_id


class OperationCancelledError(AAPError):
    """Raised when a cancellation token fires at a suspension point"""

    def __init__(self, message: str = "Operation cancelled", details: dict = None) -> None:
        super().__init__(message, details)
