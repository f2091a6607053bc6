"""
Tests for parse and aggregation reports.
"""
from site_estimator.validation.report import (
    MAX_RECORDED_ISSUES,
    AggregationReport,
    IssueSeverity,
    ParseReport,
    ValidationIssue,
)


def _issue(index, field='mcc', severity=IssueSeverity.CRITICAL):
    return ValidationIssue(
        severity=severity,
        rule="UNPARSABLE_FIELD",
        message="bad",
        record_index=index,
        field=field,
    )


class TestParseReport:
    """Test ParseReport bookkeeping."""

    def test_issue_cap(self):
        """Issues beyond the cap are counted, not stored."""
        report = ParseReport()
        for i in range(MAX_RECORDED_ISSUES + 5):
            report.add_issue(_issue(i))

        assert len(report.issues) == MAX_RECORDED_ISSUES
        assert report.dropped_issues == 5

    def test_merge(self):
        first = ParseReport(total_records=3, parsed_records=2, skipped_records=1)
        first.add_issue(_issue(1))
        second = ParseReport(total_records=2, parsed_records=1, skipped_records=1, defaulted_cell_ids=1)
        second.add_issue(_issue(4, field='lat'))

        merged = first.merge(second)

        assert merged.total_records == 5
        assert merged.parsed_records == 3
        assert merged.skipped_records == 2
        assert merged.defaulted_cell_ids == 1
        assert [issue.record_index for issue in merged.issues] == [1, 4]

    def test_skipped_by_field_ignores_warnings(self):
        report = ParseReport()
        report.add_skip(_issue(0, field='mcc'))
        report.add_skip(_issue(1, field='mcc'))
        report.add_issue(_issue(2, field='combined_cell_id', severity=IssueSeverity.WARNING))

        assert report.skipped_records == 2
        assert report.skipped_by_field == {'mcc': 2}

    def test_skipped_by_field_exact_past_issue_cap(self):
        """Per-field skip counts keep counting after issues stop being stored."""
        report = ParseReport()
        for i in range(MAX_RECORDED_ISSUES):
            report.add_skip(_issue(i, field='mcc'))
        for i in range(MAX_RECORDED_ISSUES, MAX_RECORDED_ISSUES + 250):
            report.add_skip(_issue(i, field='lat'))

        assert len(report.issues) == MAX_RECORDED_ISSUES
        assert report.dropped_issues == 250
        assert report.skipped_records == MAX_RECORDED_ISSUES + 250
        assert report.skipped_by_field == {'mcc': MAX_RECORDED_ISSUES, 'lat': 250}

    def test_merge_sums_skipped_fields(self):
        first = ParseReport()
        first.add_skip(_issue(0, field='mcc'))
        second = ParseReport()
        second.add_skip(_issue(1, field='mcc'))
        second.add_skip(_issue(2, field='lon'))

        merged = first.merge(second)

        assert merged.skipped_by_field == {'mcc': 2, 'lon': 1}
        assert merged.skipped_records == 3

    def test_log_summary(self):
        """Should not raise with or without skipped records."""
        ParseReport().log_summary()
        ParseReport(total_records=2, skipped_records=1).log_summary()


class TestAggregationReport:
    """Test AggregationReport counters."""

    def test_counts(self):
        report = AggregationReport(total_sites=4, fallback_sites=[(234, 10, 1)])

        assert report.fallback_count == 1
        assert report.weighted_count == 3

    def test_log_summary(self):
        report = AggregationReport(
            total_sites=2,
            fallback_sites=[(234, 10, 1)],
            failed_sites=[(234, 10, 2)],
        )
        report.log_summary()
