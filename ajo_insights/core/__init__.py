"""
Core module: Configuration, logging, clock, leases, and exception handling.
"""

from .clock import Clock, FixedClock, ensure_utc, system_clock
from .config import Config, config
from .exceptions import (
    AnomalyDetectionError,
    AssignmentMissingError,
    ConfigurationError,
    DataValidationError,
    ExperimentNotFoundError,
    JobLockedError,
    SubjectNotFoundError,
)
from .leases import Lease, LeaseManager

__all__ = [
    "Config",
    "config",
    "Clock",
    "FixedClock",
    "ensure_utc",
    "system_clock",
    "Lease",
    "LeaseManager",
    "AnomalyDetectionError",
    "AssignmentMissingError",
    "ConfigurationError",
    "DataValidationError",
    "ExperimentNotFoundError",
    "JobLockedError",
    "SubjectNotFoundError",
]
