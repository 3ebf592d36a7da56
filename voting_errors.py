class VotingError(Exception):
    """Base class for every rejected contest operation."""
    kind = "VotingError"


class Unauthorized(VotingError):
    kind = "Unauthorized"


class NotFound(VotingError):
    kind = "NotFound"


class InvalidArgument(VotingError):
    kind = "InvalidArgument"


class PhaseError(VotingError):
    kind = "PhaseError"


class Conflict(VotingError):
    kind = "Conflict"


class AuditLogError(Exception):
    """Raised when a persisted audit log cannot be trusted."""
