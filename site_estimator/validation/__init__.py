"""
Batch diagnostics for parsing and aggregation.

Reports count what was skipped or degraded so nothing is dropped silently.
"""
from .report import (
    ParseReport,
    AggregationReport,
    ValidationIssue,
    IssueSeverity,
)

__all__ = [
    'ParseReport',
    'AggregationReport',
    'ValidationIssue',
    'IssueSeverity',
]
