"""
Fixed-width field types for the cell export.

This module defines the declared width of every numeric column of the
export and the strict text decoders used by the record parser:

1. Bounds come from numpy integer types, so a field declared uint16
   accepts exactly what a uint16 column can hold
2. Values outside the declared width are rejected, never truncated
3. The same dtypes are used when the cleaned observations are written
   back out as a DataFrame
"""
import math
import re

import numpy as np

_UNSIGNED_RE = re.compile(r'[0-9]+')
_SIGNED_RE = re.compile(r'[+-]?[0-9]+')

_TRUE_LITERALS = frozenset({'1', 't', 'T', 'TRUE', 'true', 'True'})
_FALSE_LITERALS = frozenset({'0', 'f', 'F', 'FALSE', 'false', 'False'})


# Observation fields and their declared widths
OBSERVATION_DTYPES = {
    'mcc': np.uint16,
    'mnc': np.uint16,
    'tracking_area_code': np.uint16,
    'physical_cell_id': np.uint16,
    'lon': np.float64,
    'lat': np.float64,
    'range': np.uint32,
    'sample_count': np.uint32,
    'created_at': np.uint32,
    'updated_at': np.uint32,
    'average_signal': np.int16,
    'site_id': np.uint32,
    'sector_id': np.uint16,
}

# The combined cell id is read as 32-bit; anything wider is treated as unparsable
COMBINED_CELL_ID_DTYPE = np.uint32


def int_bounds(dtype) -> tuple:
    """
    Inclusive (min, max) range of an integer dtype as Python ints.

    Example:
        >>> int_bounds(np.uint16)
        (0, 65535)
    """
    info = np.iinfo(dtype)
    return int(info.min), int(info.max)


def decode_unsigned(text: str, dtype) -> int:
    """
    Decode a base-10 unsigned integer that must fit in ``dtype``.

    Only ASCII digits are accepted: no sign, no whitespace, no separators.

    Raises:
        ValueError: If the text is not a number or is out of range
    """
    if not _UNSIGNED_RE.fullmatch(text):
        raise ValueError(f"invalid unsigned integer: {text!r}")
    value = int(text)
    _, high = int_bounds(dtype)
    if value > high:
        raise ValueError(f"value {value} out of range for {np.dtype(dtype).name} (max {high})")
    return value


def decode_signed(text: str, dtype) -> int:
    """
    Decode a base-10 signed integer (optional leading +/-) that must fit in ``dtype``.

    Raises:
        ValueError: If the text is not a number or is out of range
    """
    if not _SIGNED_RE.fullmatch(text):
        raise ValueError(f"invalid signed integer: {text!r}")
    value = int(text)
    low, high = int_bounds(dtype)
    if value < low or value > high:
        raise ValueError(
            f"value {value} out of range for {np.dtype(dtype).name} ({low}..{high})"
        )
    return value


def decode_float(text: str) -> float:
    """
    Decode a 64-bit float. NaN and infinities are accepted and passed through.

    Raises:
        ValueError: If the text is empty, padded with whitespace or not a float
    """
    if not text or not text.isascii() or text != text.strip() or '_' in text:
        raise ValueError(f"invalid float: {text!r}")
    value = float(text)
    if math.isinf(value) and not re.search(r'inf', text, re.IGNORECASE):
        # Finite literal that overflows float64 (e.g. 1e999)
        raise ValueError(f"value {text!r} out of range for float64")
    return value


def decode_bool(text: str) -> bool:
    """
    Decode a boolean literal (1/t/T/TRUE/true/True or 0/f/F/FALSE/false/False).

    Raises:
        ValueError: If the text is not one of the accepted literals
    """
    if text in _TRUE_LITERALS:
        return True
    if text in _FALSE_LITERALS:
        return False
    raise ValueError(f"invalid boolean: {text!r}")


def observation_frame_dtypes() -> dict:
    """
    Column dtypes for a DataFrame of observations, keyed by field name.

    Returns:
        dict: Field name to numpy dtype (strings and bools excluded)
    """
    return dict(OBSERVATION_DTYPES)
