"""
Health persistence components: fingerprinting, the analysis cache, the
history / usage store and project snapshot repositories.
"""

from .fingerprint import FingerprintInputs, compute_fingerprint
from .analysis_cache import AnalysisCache, AnalysisCacheEntry
from .history_store import HistoryEntry, HistoryStore, UsageRecord
from .project_repository import (
    InMemoryProjectRepository,
    JsonProjectRepository,
    NoAnalysisDataError,
    ProjectNotFoundError,
    ProjectRepository,
)

__all__ = [
    "FingerprintInputs",
    "compute_fingerprint",
    "AnalysisCache",
    "AnalysisCacheEntry",
    "HistoryEntry",
    "HistoryStore",
    "UsageRecord",
    "InMemoryProjectRepository",
    "JsonProjectRepository",
    "NoAnalysisDataError",
    "ProjectNotFoundError",
    "ProjectRepository",
]
