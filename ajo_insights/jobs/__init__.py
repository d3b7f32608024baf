"""
Jobs module: scheduled analytics jobs guarded by per-kind leases.
"""

from .kinds import DEFAULT_CADENCES, JobKind, JobResult
from .runner import JobRunner

__all__ = [
	"JobKind",
	"JobResult",
	"JobRunner",
	"DEFAULT_CADENCES",
]
