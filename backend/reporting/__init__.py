"""
Report bundle exports.
"""

from .builder import ReportBuilder
from .config import ReportConfig
from .schema import ReportBundle

__all__ = [
    "ReportBuilder",
    "ReportConfig",
    "ReportBundle",
]
