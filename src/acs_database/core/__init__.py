# ABOUTME: Business logic and orchestration layer
# ABOUTME: Pipeline Stage 2: Classification outcomes → records, reconciliation and phase sequencing

"""
Core Layer: Business logic and workflow orchestration

This layer handles:
- Domain models and record assembly
- Reconciliation of backlinks against the stored database
- Pipeline phase sequencing and per-phase summaries

Data Flow: extraction/ outcomes → Records → persistence/ database
"""

from .models import (
    AcsFields,
    AcsRecord,
    DetectionMethod,
    Found,
    NameRecord,
    NotFound,
    PhaseSummary,
)

# Import service and pipeline on-demand to avoid circular imports
# Use: from acs_database.core.pipeline import AcsPipeline

__all__ = [
    "AcsFields",
    "AcsRecord",
    "DetectionMethod",
    "Found",
    "NameRecord",
    "NotFound",
    "PhaseSummary",
]
