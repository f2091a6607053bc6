"""
Tests for custom exceptions.
"""
import pytest
from site_estimator.data.schemas import SiteKey
from site_estimator.utils.exceptions import (
    SiteEstimatorError,
    ConfigurationError,
    DataLoadError,
    ParseError,
    AggregationError,
    OutputError,
)


def test_base_exception():
    """Test base exception."""
    with pytest.raises(SiteEstimatorError):
        raise SiteEstimatorError("Base error")


def test_configuration_error():
    """Test configuration error."""
    with pytest.raises(ConfigurationError):
        raise ConfigurationError("Invalid config")

    # Should also be catchable as base class
    with pytest.raises(SiteEstimatorError):
        raise ConfigurationError("Invalid config")


def test_parse_error_with_details():
    """Test parse error carries the field, value and record position."""
    error = ParseError("Invalid mcc", field="mcc", value="abc", record_index=42)

    assert error.field == "mcc"
    assert error.value == "abc"
    assert error.record_index == 42
    assert "field=mcc" in str(error)
    assert "record=42" in str(error)


def test_parse_error_without_details():
    """Test parse error message is unchanged without details."""
    error = ParseError("Record too short")
    assert str(error) == "Record too short"
    assert error.field is None


def test_aggregation_error_key():
    """Test aggregation error reports the site key."""
    error = AggregationError("No observations", key=SiteKey(234, 10, 100))

    assert error.key == SiteKey(234, 10, 100)
    assert "(234, 10, 100)" in str(error)


def test_all_exceptions_inherit_from_base():
    """Test that all custom exceptions inherit from SiteEstimatorError."""
    exceptions = [
        ConfigurationError("test"),
        DataLoadError("test"),
        ParseError("test"),
        AggregationError("test"),
        OutputError("test"),
    ]

    for exc in exceptions:
        assert isinstance(exc, SiteEstimatorError)
        assert isinstance(exc, Exception)
