"""
Core algorithm modules for site estimation.

Contains the combined cell id decomposition and the weighted-centroid
site aggregation.
"""
from site_estimator.core.decompose import decompose, SECTOR_RADIX
from site_estimator.core.aggregation import (
    aggregate,
    accumulate,
    merge_partials,
    finalize,
    sort_sites,
    observations_to_frame,
    AggregationResult,
)

__all__ = [
    'decompose',
    'SECTOR_RADIX',
    'aggregate',
    'accumulate',
    'merge_partials',
    'finalize',
    'sort_sites',
    'observations_to_frame',
    'AggregationResult',
]
