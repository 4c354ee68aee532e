"""
Bounded concurrent retrieval of catalog documents.

Provides:
- retrieve_all: fetch many documents with a worker pool
- retrieve_one: the single-document case
- partition_outcomes: split outcomes into successes and failures
"""

from ..schemas.outcome import partition_outcomes
from .orchestrator import (
    RETRYABLE_STATUS_CODES,
    RetrievalCancelled,
    RetrievalErrorKind,
    RetrievalFailure,
    RetrievalOrchestrator,
)

__all__ = [
    "RETRYABLE_STATUS_CODES",
    "RetrievalCancelled",
    "RetrievalErrorKind",
    "RetrievalFailure",
    "RetrievalOrchestrator",
    "partition_outcomes",
]
