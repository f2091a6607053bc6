"""
Pydantic schemas for cell observations and site estimates.

Defines the validated per-cell observation produced by the record parser,
the grouping key used by the site aggregator and the per-site location
estimate it produces.
"""
from typing import NamedTuple, Tuple

import numpy as np
from pydantic import BaseModel, Field, model_validator

from site_estimator.utils.dtypes import int_bounds

_U16_MAX = int_bounds(np.uint16)[1]
_U32_MAX = int_bounds(np.uint32)[1]
_I16_MIN, _I16_MAX = int_bounds(np.int16)
_SECTOR_MAX = int_bounds(np.uint8)[1]


class SiteKey(NamedTuple):
    """Grouping key: observations share a site iff all three fields match."""
    mcc: int
    mnc: int
    site_id: int


class Observation(BaseModel):
    """
    Schema for one validated cell-tower sighting.

    ``site_id`` and ``sector_id`` are derived from the combined cell id by
    the record parser; they are always set together.

    Example:
        >>> obs = Observation(
        ...     radio_type='LTE', mcc=234, mnc=1, tracking_area_code=500,
        ...     physical_cell_id=3, lon=10.0, lat=50.0, range=1000,
        ...     sample_count=10, changeable=True, created_at=1000000,
        ...     updated_at=1000001, average_signal=-90, site_id=100, sector_id=1
        ... )
        >>> obs.site_key
        SiteKey(mcc=234, mnc=1, site_id=100)
    """
    radio_type: str = Field(..., description="Radio technology tag, passed through")

    # Network
    mcc: int = Field(..., ge=0, le=_U16_MAX, description="Mobile country code")
    mnc: int = Field(..., ge=0, le=_U16_MAX, description="Mobile network code")
    tracking_area_code: int = Field(..., ge=0, le=_U16_MAX, description="Tracking area code")
    physical_cell_id: int = Field(0, ge=0, le=_U16_MAX, description="Physical cell id (0 when absent)")

    # Location
    lon: float = Field(..., description="Longitude, not range checked")
    lat: float = Field(..., description="Latitude, not range checked")
    range: int = Field(..., ge=0, le=_U32_MAX, description="Coverage radius estimate")

    # Measurement metadata
    sample_count: int = Field(..., ge=0, le=_U32_MAX, description="Number of samples behind the position")
    changeable: bool = Field(..., description="Whether the position is a computed estimate")
    created_at: int = Field(..., ge=0, le=_U32_MAX, description="Creation timestamp (epoch seconds)")
    updated_at: int = Field(..., ge=0, le=_U32_MAX, description="Update timestamp (epoch seconds)")
    average_signal: int = Field(0, ge=_I16_MIN, le=_I16_MAX, description="Average signal strength (0 when absent)")

    # Derived from the combined cell id
    site_id: int = Field(..., ge=0, le=_U32_MAX, description="eNodeB / site identifier")
    sector_id: int = Field(..., ge=0, le=_SECTOR_MAX, description="Sector index within the site")

    model_config = {
        "frozen": True,
    }

    @property
    def network_id(self) -> Tuple[int, int]:
        """(mcc, mnc) pair."""
        return self.mcc, self.mnc

    @property
    def site_key(self) -> SiteKey:
        return SiteKey(self.mcc, self.mnc, self.site_id)


class EstimatedSite(BaseModel):
    """
    Schema for one per-site location estimate.

    The position is the ln(sample_count)-weighted centroid of the site's
    observations, or their plain mean when ``fallback`` is set.
    """
    mcc: int = Field(..., ge=0, le=_U16_MAX)
    mnc: int = Field(..., ge=0, le=_U16_MAX)
    site_id: int = Field(..., ge=0, le=_U32_MAX)
    lon: float
    lat: float
    observation_count: int = Field(..., ge=1, description="Observations in the group")
    total_weight: float = Field(0.0, description="Sum of ln(sample_count) over weighted members")
    fallback: bool = Field(False, description="Position is the unweighted mean of the members")

    model_config = {
        "frozen": True,
    }

    @model_validator(mode='after')
    def check_weight_consistency(self):
        """A weighted estimate must carry a positive total weight."""
        if not self.fallback and not self.total_weight > 0:
            raise ValueError(
                f"weighted estimate requires positive total_weight, got {self.total_weight}"
            )
        return self

    @property
    def network_id(self) -> Tuple[int, int]:
        return self.mcc, self.mnc

    @property
    def key(self) -> SiteKey:
        return SiteKey(self.mcc, self.mnc, self.site_id)
