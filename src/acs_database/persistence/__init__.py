# ABOUTME: JSON persistence layer for the ACS database outputs
# ABOUTME: Pipeline Stage 3: Merged records → atomically written JSON files

"""
Persistence Layer: Save and reload results between runs

This layer handles:
- The in-memory result database and its merge rule
- Loading a prior run's outputs for reconciliation
- Atomic, sorted JSON serialization

Data Flow: core/ records → ResultDatabase → output/*.json
"""

from .store import MergeResult, ResultDatabase, sort_records

__all__ = [
    "MergeResult",
    "ResultDatabase",
    "sort_records",
]
