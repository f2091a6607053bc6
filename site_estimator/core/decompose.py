"""
Combined cell identifier decomposition.

An LTE cell identity packs the eNodeB (site) id in the high-order bits
and the local sector index in the low 8 bits, so a site holds at most
256 sectors.
"""
from typing import Tuple

# Sectors per site; the low 8 bits of the combined id
SECTOR_RADIX = 256


def decompose(combined_cell_id: int) -> Tuple[int, int]:
    """
    Split a combined cell identifier into (site_id, sector_id).

    Args:
        combined_cell_id: Non-negative combined cell identifier

    Returns:
        Tuple of (site_id, sector_id) where
        site_id * SECTOR_RADIX + sector_id == combined_cell_id

    Raises:
        ValueError: If combined_cell_id is negative

    Example:
        >>> decompose(25601)
        (100, 1)
    """
    if combined_cell_id < 0:
        raise ValueError(f"combined cell id must be non-negative, got {combined_cell_id}")
    site_id, sector_id = divmod(combined_cell_id, SECTOR_RADIX)
    return site_id, sector_id

