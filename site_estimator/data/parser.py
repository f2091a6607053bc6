"""
Record parser for the bulk cell export.

Turns one raw record (a sequence of string fields in export column order)
into a validated Observation, decomposing the combined cell id into site
and sector on the way.

Column order:
    0 radio, 1 mcc, 2 mnc, 3 tac, 4 combined cell id, 5 pci (optional),
    6 lon, 7 lat, 8 range, 9 samples, 10 changeable, 11 created,
    12 updated, 13 average signal (optional)

Numeric fields are range checked against their declared width: a value
that does not fit is a ParseError, it is never truncated. The combined
cell id is the one lenient field: when it cannot be decoded the record is
kept with site 0 / sector 0.
"""
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from pydantic import ValidationError

from site_estimator.core.decompose import decompose
from site_estimator.data.schemas import Observation
from site_estimator.utils.dtypes import (
    COMBINED_CELL_ID_DTYPE,
    decode_bool,
    decode_float,
    decode_signed,
    decode_unsigned,
)
from site_estimator.utils.error_handling import require_min_fields
from site_estimator.utils.exceptions import ParseError
from site_estimator.utils.logging_config import get_logger
from site_estimator.validation.report import IssueSeverity, ParseReport, ValidationIssue

logger = get_logger(__name__)

MIN_FIELDS = 14

# Column positions in the export
RADIO, MCC, MNC, TAC, CELL_ID, PCI, LON, LAT, RANGE, SAMPLES, CHANGEABLE, CREATED, UPDATED, AVERAGE_SIGNAL = range(14)


def _decode(fields: Sequence[str], position: int, name: str, decoder: Callable):
    text = fields[position]
    try:
        return decoder(text)
    except ValueError as e:
        raise ParseError(f"Invalid {name}: {e}", field=name, value=text) from e


def _decode_optional(fields: Sequence[str], position: int, name: str, decoder: Callable):
    if fields[position] == "":
        return 0
    return _decode(fields, position, name, decoder)


def _unsigned(dtype) -> Callable:
    return lambda text: decode_unsigned(text, dtype)


def decode_combined_cell_id(text: str) -> Optional[int]:
    """
    Decode the combined cell id, or return None if it is unusable.

    Empty, malformed and wider-than-32-bit values all yield None.
    """
    try:
        return decode_unsigned(text, COMBINED_CELL_ID_DTYPE)
    except ValueError:
        return None


def parse_record(fields: Sequence[str]) -> Observation:
    """
    Parse one raw record into an Observation.

    Args:
        fields: At least 14 string fields in export column order

    Returns:
        Validated Observation

    Raises:
        ParseError: If the record is too short or a required field is
            malformed or out of range

    Example:
        >>> obs = parse_record(["LTE", "234", "1", "500", "25601", "3", "10.0", "50.0",
        ...                     "1000", "10", "true", "1000000", "1000001", "-90"])
        >>> obs.site_id, obs.sector_id
        (100, 1)
    """
    observation, _ = _parse(fields)
    return observation


def _parse(fields: Sequence[str]) -> Tuple[Observation, bool]:
    """Parse a record; the flag is True when the combined cell id was defaulted."""
    require_min_fields(fields, MIN_FIELDS)

    values = {
        'radio_type': fields[RADIO],
        'mcc': _decode(fields, MCC, 'mcc', _unsigned(np.uint16)),
        'mnc': _decode(fields, MNC, 'mnc', _unsigned(np.uint16)),
        'tracking_area_code': _decode(fields, TAC, 'tracking_area_code', _unsigned(np.uint16)),
        'physical_cell_id': _decode_optional(fields, PCI, 'physical_cell_id', _unsigned(np.uint16)),
        'lon': _decode(fields, LON, 'lon', decode_float),
        'lat': _decode(fields, LAT, 'lat', decode_float),
        'range': _decode(fields, RANGE, 'range', _unsigned(np.uint32)),
        'sample_count': _decode(fields, SAMPLES, 'sample_count', _unsigned(np.uint32)),
        'changeable': _decode(fields, CHANGEABLE, 'changeable', decode_bool),
        'created_at': _decode(fields, CREATED, 'created_at', _unsigned(np.uint32)),
        'updated_at': _decode(fields, UPDATED, 'updated_at', _unsigned(np.uint32)),
        'average_signal': _decode_optional(
            fields, AVERAGE_SIGNAL, 'average_signal', lambda text: decode_signed(text, np.int16)
        ),
    }

    combined_cell_id = decode_combined_cell_id(fields[CELL_ID])
    defaulted = combined_cell_id is None
    if defaulted:
        logger.warning(
            "combined_cell_id_defaulted",
            value=fields[CELL_ID],
            mcc=values['mcc'],
            mnc=values['mnc'],
        )
        combined_cell_id = 0

    values['site_id'], values['sector_id'] = decompose(combined_cell_id)

    try:
        return Observation(**values), defaulted
    except ValidationError as e:
        bad_field = e.errors()[0]['loc'][0] if e.errors() and e.errors()[0]['loc'] else None
        raise ParseError(f"Observation failed validation: {e}", field=bad_field) from e


@dataclass
class ParseResult:
    """Observations parsed from a batch, in input order, plus the batch report."""
    observations: List[Observation] = field(default_factory=list)
    report: ParseReport = field(default_factory=ParseReport)

    def extend(self, other: 'ParseResult') -> None:
        """Append another batch's results (e.g. the next chunk)."""
        self.observations.extend(other.observations)
        self.report = self.report.merge(other.report)


def parse_records(records: Iterable[Sequence[str]], start_index: int = 0) -> ParseResult:
    """
    Parse a batch of raw records, skipping the malformed ones.

    Args:
        records: Raw records in export column order
        start_index: Index of the first record, used in issue reports when
            the batch is one chunk of a larger export

    Returns:
        ParseResult with the observations and a ParseReport counting skipped
        records and lenient combined-id defaults

    Example:
        >>> result = parse_records(rows)
        >>> result.report.log_summary()
    """
    result = ParseResult()
    report = result.report

    for index, fields in enumerate(records, start=start_index):
        report.total_records += 1
        try:
            observation, defaulted = _parse(fields)
        except ParseError as e:
            e.record_index = index
            report.add_skip(ValidationIssue(
                severity=IssueSeverity.CRITICAL,
                rule="UNPARSABLE_FIELD" if e.field != "record" else "MALFORMED_RECORD",
                message=str(e),
                record_index=index,
                field=e.field,
                actual_value=e.value,
            ))
            logger.debug("record_skipped", record=index, field=e.field, value=e.value)
            continue

        if defaulted:
            report.defaulted_cell_ids += 1
            report.add_issue(ValidationIssue(
                severity=IssueSeverity.WARNING,
                rule="DEFAULTED_CELL_ID",
                message="Combined cell id unparsable, site and sector default to 0",
                record_index=index,
                field="combined_cell_id",
                actual_value=fields[CELL_ID],
            ))

        result.observations.append(observation)
        report.parsed_records += 1

    return result
