"""
Site location estimation from cell observations.

Observations are grouped by (mcc, mnc, site_id) across sectors and cells,
and each group's position is the centroid of its members weighted by
ln(sample_count):

    w_i = ln(samples_i)
    lat = sum(w_i * lat_i) / sum(w_i)
    lon = sum(w_i * lon_i) / sum(w_i)

Edge cases:
- Observations with zero samples have no defined weight. They are left out
  of the weighted sums (and logged) but still count as group members.
- Members with zero weight add nothing to the weighted sums.
- A group whose total weight is zero or non-finite (e.g. a single cell
  seen once, ln(1) = 0) is placed at the plain mean of its members.
- Coordinates are not range checked. Each axis is divided on its own, so
  an infinite longitude never moves the latitude; a NaN coordinate makes
  that axis NaN.

The per-site sums are associative: chunks of the input are summed with a
pandas groupby and the partial frames are merged with a second groupby.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Union

import numpy as np
import pandas as pd

from site_estimator.data.schemas import EstimatedSite, Observation, SiteKey
from site_estimator.utils.dtypes import observation_frame_dtypes
from site_estimator.utils.exceptions import AggregationError
from site_estimator.utils.logging_config import get_logger
from site_estimator.validation.report import AggregationReport, IssueSeverity, ValidationIssue

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 100000

SITE_KEY_COLUMNS = ['mcc', 'mnc', 'site_id']

# Per-site partial sums produced by accumulate()
SUM_COLUMNS = [
    'total_weight',
    'weighted_lat_sum',
    'weighted_lon_sum',
    'lat_sum',
    'lon_sum',
    'lat_nan_count',
    'lon_nan_count',
    'observation_count',
    'zero_sample_count',
]

OBSERVATION_FIELDS = list(Observation.model_fields)


def observations_to_frame(observations: Iterable[Observation]) -> pd.DataFrame:
    """
    Build a DataFrame of observations with fixed-width dtypes.

    Columns are the Observation field names, rows keep input order.

    Args:
        observations: Observations in input order

    Returns:
        DataFrame with one row per observation
    """
    records = [obs.model_dump() for obs in observations]
    df = pd.DataFrame.from_records(records, columns=OBSERVATION_FIELDS)
    if len(df) > 0:
        df = df.astype(observation_frame_dtypes())
    return df


def empty_sums() -> pd.DataFrame:
    """Partial-sum frame with no sites."""
    index = pd.MultiIndex.from_arrays([[], [], []], names=SITE_KEY_COLUMNS)
    return pd.DataFrame({column: pd.Series(dtype='float64') for column in SUM_COLUMNS}, index=index)


def accumulate(frame: pd.DataFrame) -> pd.DataFrame:
    """
    Per-site partial sums for a frame of observations.

    ``sample_count`` may hold any non-negative real (the weight is
    ln(samples)); zero counts are flagged instead of weighted.

    Args:
        frame: Observations with at least mcc, mnc, site_id, lon, lat and
            sample_count columns

    Returns:
        DataFrame indexed by (mcc, mnc, site_id) with SUM_COLUMNS, sites in
        order of first appearance
    """
    if len(frame) == 0:
        return empty_sums()

    samples = frame['sample_count'].to_numpy(dtype=np.float64)
    lat = frame['lat'].to_numpy(dtype=np.float64)
    lon = frame['lon'].to_numpy(dtype=np.float64)

    weighted = samples > 0
    weight = np.log(np.where(weighted, samples, 1.0))
    contributes = weight > 0

    parts = frame[SITE_KEY_COLUMNS].copy()
    parts['total_weight'] = weight
    with np.errstate(invalid='ignore'):
        parts['weighted_lat_sum'] = np.where(contributes, weight * lat, 0.0)
        parts['weighted_lon_sum'] = np.where(contributes, weight * lon, 0.0)
    parts['lat_sum'] = lat
    parts['lon_sum'] = lon
    # groupby sums skip NaN, so NaN members are counted and restored in finalize
    parts['lat_nan_count'] = np.isnan(lat).astype(np.int64)
    parts['lon_nan_count'] = np.isnan(lon).astype(np.int64)
    parts['observation_count'] = 1
    parts['zero_sample_count'] = (~weighted).astype(np.int64)

    return parts.groupby(SITE_KEY_COLUMNS, sort=False)[SUM_COLUMNS].sum()


def merge_partials(partials: Iterable[pd.DataFrame]) -> pd.DataFrame:
    """
    Merge partial sums computed over disjoint chunks.

    Sites keep the order in which they first appear across the partials,
    so merging chunk results in input order matches a single pass.
    """
    partials = [partial for partial in partials if len(partial) > 0]
    if not partials:
        return empty_sums()
    if len(partials) == 1:
        return partials[0]
    return pd.concat(partials).groupby(level=SITE_KEY_COLUMNS, sort=False).sum()


@dataclass
class AggregationResult:
    """Site estimates keyed by SiteKey, in order of first appearance, plus the report."""
    sites: Dict[SiteKey, EstimatedSite] = field(default_factory=dict)
    report: AggregationReport = field(default_factory=AggregationReport)

    def __len__(self):
        return len(self.sites)


def _axis_estimates(sums: pd.DataFrame, fallback: np.ndarray, axis: str) -> np.ndarray:
    """Weighted centroid (or plain mean) of one coordinate axis per site."""
    total_weight = sums['total_weight'].to_numpy(dtype=np.float64)
    count = sums['observation_count'].to_numpy(dtype=np.float64)

    with np.errstate(divide='ignore', invalid='ignore'):
        weighted = sums[f'weighted_{axis}_sum'].to_numpy(dtype=np.float64) / total_weight
        mean = sums[f'{axis}_sum'].to_numpy(dtype=np.float64) / count

    estimate = np.where(fallback, mean, weighted)
    return np.where(sums[f'{axis}_nan_count'].to_numpy() > 0, np.nan, estimate)


def _estimate_site(key: SiteKey, row, lon: float, lat: float, fallback: bool) -> EstimatedSite:
    if row.observation_count == 0:
        raise AggregationError("No observations accumulated for site", key=key)

    return EstimatedSite(
        mcc=key.mcc,
        mnc=key.mnc,
        site_id=key.site_id,
        lon=lon,
        lat=lat,
        observation_count=int(row.observation_count),
        total_weight=float(row.total_weight),
        fallback=fallback,
    )


def finalize(sums: pd.DataFrame) -> AggregationResult:
    """
    Estimate every site from its accumulated sums.

    A problem with one group is recorded in the report and never stops the
    other groups from being estimated.
    """
    result = AggregationResult()
    report = result.report
    if len(sums) == 0:
        return result

    total_weight = sums['total_weight'].to_numpy(dtype=np.float64)
    fallback = ~np.isfinite(total_weight) | (total_weight <= 0)
    lat = _axis_estimates(sums, fallback, 'lat')
    lon = _axis_estimates(sums, fallback, 'lon')

    report.total_observations = int(sums['observation_count'].sum())
    report.zero_sample_observations = int(sums['zero_sample_count'].sum())

    for i, row in enumerate(sums.itertuples()):
        key = SiteKey(*(int(part) for part in row.Index))

        if row.zero_sample_count:
            report.issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                rule="ZERO_SAMPLES",
                message=f"{int(row.zero_sample_count)} observations with zero samples excluded from weighting",
                site_key=tuple(key),
                actual_value=int(row.zero_sample_count),
            ))
            logger.warning(
                "zero_sample_observations_excluded",
                site=key,
                excluded=int(row.zero_sample_count),
            )

        try:
            site = _estimate_site(key, row, float(lon[i]), float(lat[i]), bool(fallback[i]))
        except AggregationError as e:
            report.failed_sites.append(tuple(key))
            report.issues.append(ValidationIssue(
                severity=IssueSeverity.CRITICAL,
                rule="ESTIMATE_FAILED",
                message=str(e),
                site_key=tuple(key),
            ))
            logger.error("site_estimate_failed", site=key, error=str(e))
            continue

        if site.fallback:
            report.fallback_sites.append(tuple(key))
            report.issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                rule="DEGENERATE_WEIGHT",
                message="Total weight not positive, position is the unweighted mean",
                site_key=tuple(key),
                actual_value=float(row.total_weight),
            ))
            logger.debug(
                "site_fallback_mean",
                site=key,
                total_weight=float(row.total_weight),
                observations=int(row.observation_count),
            )

        result.sites[key] = site

    report.total_sites = len(result.sites)
    return result


def aggregate(
    observations: Union[Sequence[Observation], pd.DataFrame],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> AggregationResult:
    """
    Group observations by site and estimate each site's location.

    Args:
        observations: All observations of the run (batch, full barrier),
            as Observation objects or a frame from observations_to_frame
        chunk_size: Rows summed per groupby pass before the partial sums
            are merged

    Returns:
        AggregationResult with one EstimatedSite per distinct SiteKey

    Example:
        >>> result = aggregate(parse_records(rows).observations)
        >>> result.report.log_summary()
        >>> site = result.sites[SiteKey(234, 1, 100)]
    """
    if isinstance(observations, pd.DataFrame):
        frame = observations
    else:
        frame = observations_to_frame(observations)

    if len(frame) == 0:
        return AggregationResult()

    partials = [
        accumulate(frame.iloc[start:start + chunk_size])
        for start in range(0, len(frame), chunk_size)
    ]
    if len(partials) > 1:
        logger.info("aggregating_in_chunks", chunks=len(partials), rows=len(frame))

    return finalize(merge_partials(partials))


def sort_sites(sites: Dict[SiteKey, EstimatedSite]) -> List[EstimatedSite]:
    """Sites in canonical (mcc, mnc, site_id) order."""
    return [sites[key] for key in sorted(sites)]
