class PipelineError(Exception):
    """Base exception for all submission-pipeline errors."""

    kind: str = "pipeline"


class InvalidInputError(PipelineError):
    """Raised when an upload is empty, too large, or of an unaccepted media type."""

    kind = "invalid_input"


class PipelineNetworkError(PipelineError):
    """Raised when the recognition backend cannot be reached."""

    kind = "network"


class PipelineServiceError(PipelineError):
    """Raised when the recognition backend answers with an error."""

    kind = "service"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(PipelineError):
    """The backend answered but the body is empty, not JSON, or lacks results.

    Recoverable: attached to an empty-but-valid result instead of being raised.
    """

    kind = "malformed_response"


class SubmissionSupersededError(PipelineError):
    """Raised when awaiting a submission replaced by a newer one or closed."""

    kind = "superseded"


class StageTransitionError(PipelineError):
    """Raised on a stage transition that would regress or skip stages."""

    kind = "stage_transition"


class IllegalTransitionError(PipelineError):
    """Raised on a session lifecycle transition the state machine forbids."""

    kind = "illegal_transition"
