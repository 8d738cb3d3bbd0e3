"""Error taxonomy for the generation engine."""


class EngineError(Exception):
    """Base class for engine errors.

    ``code`` is the stable, caller-visible error code. ``retriable`` tells the
    failure handler whether the checkpoint may be resumed after this error.
    """

    code = "ENGINE_ERROR"
    retriable = True

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# Caller-facing errors

class JobNotFoundError(EngineError):
    """Raised when a job or its checkpoint does not exist."""

    code = "NOT_FOUND"
    retriable = False

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job {job_id} not found")


class NotResumableError(EngineError):
    """Raised when a checkpoint cannot be resumed."""

    code = "NOT_RESUMABLE"
    retriable = False

    def __init__(self, job_id: str, reason: str = "checkpoint cannot be resumed"):
        self.job_id = job_id
        self.reason = reason
        super().__init__(f"Job {job_id}: {reason}")


class ClaimConflictError(EngineError):
    """Raised when a job is already owned by another worker."""

    code = "CLAIM_CONFLICT"
    retriable = False

    def __init__(self, job_id: str, status: str):
        self.job_id = job_id
        self.status = status
        super().__init__(f"Job {job_id} cannot be claimed (status {status})")


class NotCancellableError(EngineError):
    """Raised when cancelling a job that already reached a terminal state."""

    code = "NOT_CANCELLABLE"
    retriable = False

    def __init__(self, job_id: str, status: str):
        self.job_id = job_id
        self.status = status
        super().__init__(f"Cannot cancel job {job_id} with status {status}")


# Configuration errors

class UnknownJobTypeError(EngineError):
    """Raised for a job type with no section catalog."""

    code = "UNKNOWN_JOB_TYPE"
    retriable = False

    def __init__(self, job_type: str):
        self.job_type = job_type
        super().__init__(f"Unknown job type: {job_type}")


class InvalidPromptContextError(EngineError):
    """Raised when a prompt context does not validate for its job type."""

    code = "INVALID_PROMPT_CONTEXT"
    retriable = False


class TemplateRenderError(EngineError):
    """Raised when an instruction template references a missing field."""

    code = "TEMPLATE_ERROR"
    retriable = False


class CatalogMismatchError(EngineError):
    """Raised when the catalog no longer matches a checkpoint's section count."""

    code = "CATALOG_MISMATCH"
    retriable = False


class SubjectNotFoundError(EngineError):
    """Raised when the subject of a document no longer exists."""

    code = "SUBJECT_NOT_FOUND"
    retriable = False

    def __init__(self, subject_id: str):
        self.subject_id = subject_id
        super().__init__(f"Subject {subject_id} not found")


# Generation errors

class GenerationError(EngineError):
    """Raised by the generation client."""

    code = "GENERATION_ERROR"


class TransientGenerationError(GenerationError):
    """Timeouts, network failures and 5xx responses."""

    code = "GENERATION_UNAVAILABLE"
    retriable = True


class RateLimitedError(TransientGenerationError):
    """Rate limit exhausted locally or reported by the service."""

    code = "RATE_LIMITED"


class PermanentGenerationError(GenerationError):
    """The service rejected the request."""

    code = "GENERATION_REJECTED"
    retriable = False


# Run-level errors

class CheckpointPersistenceError(EngineError):
    """Raised when a section append does not land on the expected cursor."""

    code = "CHECKPOINT_WRITE_FAILED"
    retriable = True


class JobCancelledError(EngineError):
    """Raised at a section boundary when cancellation was requested."""

    code = "CANCELLED"
    retriable = True

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job {job_id} cancelled by request")


class WorkerLostError(EngineError):
    """Used when a PROCESSING job stops reporting progress."""

    code = "WORKER_LOST"
    retriable = True


def is_retriable(error: BaseException) -> bool:
    """Unknown exceptions are treated as transient."""
    if isinstance(error, EngineError):
        return error.retriable
    return True
