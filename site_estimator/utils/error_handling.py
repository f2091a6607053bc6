"""
Error handling utilities for site estimation.

Provides the structural guard applied to raw records before parsing.
"""
from typing import Sequence

from site_estimator.utils.exceptions import ParseError


def require_min_fields(fields: Sequence[str], min_fields: int) -> None:
    """
    Validate that a raw record carries at least ``min_fields`` fields.

    Parameters
    ----------
    fields : Sequence[str]
        Raw record
    min_fields : int
        Minimum number of fields expected

    Raises
    ------
    ParseError
        If the record is not a sequence or is too short
    """
    if isinstance(fields, (str, bytes)) or not hasattr(fields, '__len__'):
        raise ParseError(
            f"Record must be a sequence of fields, got {type(fields).__name__}",
            field="record",
        )
    if len(fields) < min_fields:
        raise ParseError(
            f"Record has {len(fields)} fields, expected at least {min_fields}",
            field="record",
        )

