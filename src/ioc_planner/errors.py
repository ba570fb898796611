"""Error types for declaration analysis failures.

Problems with individual declarations never raise; they are reported as
diagnostics. These exceptions cover inputs the engine cannot work with at all
and cooperative cancellation.
"""


class PlannerError(Exception):
    """Base exception for all planner errors."""


class SnapshotParseError(PlannerError):
    """Raised when a declaration snapshot cannot be read or parsed."""


class SnapshotValidationError(PlannerError):
    """Raised when a declaration snapshot does not match the snapshot model."""


class ConfigurationError(PlannerError):
    """Raised when analysis configuration is invalid."""


class AnalysisCancelledError(PlannerError):
    """Raised when an analysis pass is abandoned through its cancellation token."""
