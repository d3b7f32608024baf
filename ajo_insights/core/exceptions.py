"""
Custom exceptions for the Ajo analytics engine.

These exceptions provide clear error semantics across the system.
Use them to distinguish between bad input, missing records, and contention.
"""


class DataValidationError(Exception):
    """Raised when a request or definition fails validation."""
    pass


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""
    pass


class ExperimentNotFoundError(Exception):
    """Raised when an experiment name is unknown (or not active where required)."""
    pass


class SubjectNotFoundError(Exception):
    """Raised when a user or group cannot be found in the domain repository."""
    pass


class AssignmentMissingError(Exception):
    """Raised when a conversion is tracked for a subject with no assignment."""
    pass


class AnomalyDetectionError(Exception):
    """Raised when a metric cannot be analyzed."""
    pass


class JobLockedError(Exception):
    """Raised when a job of the same kind already holds its lease."""
    pass
