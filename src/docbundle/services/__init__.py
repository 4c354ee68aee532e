"""
Services for docbundle.

This package contains the orchestration services that compose the
catalog client, retrieval orchestrator and archive assembler.
"""

from .export import (
    ExportPipeline,
    ExportResult,
    PipelineError,
    PipelineErrorKind,
)

__all__ = [
    "ExportPipeline",
    "ExportResult",
    "PipelineError",
    "PipelineErrorKind",
]
