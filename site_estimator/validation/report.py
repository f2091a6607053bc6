"""
Batch diagnostics for parsing and aggregation.

Record- and group-scoped problems are recovered locally; these reports make
them visible to the caller instead of dropping them silently.
"""
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

from site_estimator.utils.logging_config import format_site_key, get_logger

logger = get_logger(__name__)

# Issues kept in memory per report; counts stay exact beyond this
MAX_RECORDED_ISSUES = 1000


class IssueSeverity(Enum):
    """Severity levels for batch issues."""
    CRITICAL = "CRITICAL"  # Record dropped
    WARNING = "WARNING"    # Kept with a degraded value
    INFO = "INFO"          # Informational flag


@dataclass
class ValidationIssue:
    """A single problem found in a record or a site group."""
    severity: IssueSeverity
    rule: str
    message: str
    record_index: Optional[int] = None
    field: Optional[str] = None
    actual_value: Any = None
    site_key: Optional[tuple] = None


@dataclass
class ParseReport:
    """Outcome of parsing a batch of raw records."""
    total_records: int = 0
    parsed_records: int = 0
    skipped_records: int = 0
    defaulted_cell_ids: int = 0
    skipped_fields: Counter = field(default_factory=Counter)
    issues: List[ValidationIssue] = field(default_factory=list)
    dropped_issues: int = 0

    def add_issue(self, issue: ValidationIssue) -> None:
        """Record an issue, keeping at most MAX_RECORDED_ISSUES of them."""
        if len(self.issues) < MAX_RECORDED_ISSUES:
            self.issues.append(issue)
        else:
            self.dropped_issues += 1

    def add_skip(self, issue: ValidationIssue) -> None:
        """Count a skipped record under its offending field and record the issue."""
        self.skipped_records += 1
        self.skipped_fields[issue.field] += 1
        self.add_issue(issue)

    def merge(self, other: 'ParseReport') -> 'ParseReport':
        """Combine two reports (e.g. from consecutive chunks)."""
        merged = ParseReport(
            total_records=self.total_records + other.total_records,
            parsed_records=self.parsed_records + other.parsed_records,
            skipped_records=self.skipped_records + other.skipped_records,
            defaulted_cell_ids=self.defaulted_cell_ids + other.defaulted_cell_ids,
            skipped_fields=self.skipped_fields + other.skipped_fields,
            dropped_issues=self.dropped_issues + other.dropped_issues,
        )
        for issue in self.issues + other.issues:
            merged.add_issue(issue)
        return merged

    @property
    def skipped_by_field(self) -> dict:
        """Number of skipped records per offending field."""
        return dict(self.skipped_fields)

    def log_summary(self):
        """Log a summary of the parse."""
        logger.info(
            "Parse complete",
            total=self.total_records,
            parsed=self.parsed_records,
            skipped=self.skipped_records,
            defaulted_cell_ids=self.defaulted_cell_ids,
        )

        if self.skipped_records > 0:
            logger.warning(
                f"Skipped {self.skipped_records} malformed records",
                by_field=self.skipped_by_field,
            )


@dataclass
class AggregationReport:
    """Outcome of aggregating observations into site estimates."""
    total_observations: int = 0
    total_sites: int = 0
    zero_sample_observations: int = 0
    fallback_sites: List[tuple] = field(default_factory=list)
    failed_sites: List[tuple] = field(default_factory=list)
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def fallback_count(self) -> int:
        """Number of sites estimated with the unweighted mean."""
        return len(self.fallback_sites)

    @property
    def weighted_count(self) -> int:
        return self.total_sites - self.fallback_count

    def log_summary(self):
        """Log a summary of the aggregation."""
        logger.info(
            "Aggregation complete",
            observations=self.total_observations,
            sites=self.total_sites,
            weighted=self.weighted_count,
            fallback=self.fallback_count,
            zero_sample_observations=self.zero_sample_observations,
        )

        if self.fallback_count > 0:
            logger.warning(
                f"{self.fallback_count} sites had degenerate weights, used unweighted mean",
                sample_sites=[format_site_key(key) for key in self.fallback_sites[:5]],
            )
        if self.failed_sites:
            logger.error(
                f"{len(self.failed_sites)} sites could not be estimated",
                sites=[format_site_key(key) for key in self.failed_sites[:5]],
            )
