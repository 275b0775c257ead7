# taskboard/errors.py


class TaskboardError(Exception):
    """Base for every error the data layer reports to the UI."""

    kind = "error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class TransportFailure(TaskboardError):
    """Network error or non-success HTTP status."""

    kind = "transport"


class MalformedResponse(TaskboardError):
    """Body is not JSON or not the expected shape."""

    kind = "malformed"


class EmptyResult(TaskboardError):
    """Sheet answered, but with zero rows or only an error payload."""

    kind = "empty"


class AuthFailure(TaskboardError):
    kind = "auth"


class AccessDenied(TaskboardError):
    """Admin scope does not cover the requested class/subject."""

    kind = "access"


class ValidationError(TaskboardError):
    kind = "validation"


class RejectedWrite(TaskboardError):
    """Append answered without a success marker."""

    kind = "rejected"
