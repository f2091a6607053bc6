"""
Result emitters for cleaned observations and site estimates.

Two implementations of the same interface:
1. CSVResultEmitter - observations.csv and estimated_sites.csv
2. SQLResultEmitter - appends to database tables through SQLAlchemy

Emitters serialize only; any failure to write is fatal to the run and
surfaces as OutputError.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError

from site_estimator.core.aggregation import observations_to_frame, sort_sites
from site_estimator.data.schemas import EstimatedSite, Observation, SiteKey
from site_estimator.utils.config import PipelineConfig
from site_estimator.utils.exceptions import OutputError
from site_estimator.utils.logging_config import get_logger

logger = get_logger(__name__)


# Observation field -> output column
OBSERVATION_COLUMNS = {
    'radio_type': 'radio',
    'mcc': 'mcc',
    'mnc': 'mnc',
    'tracking_area_code': 'tac',
    'physical_cell_id': 'pci',
    'lon': 'lon',
    'lat': 'lat',
    'range': 'range',
    'sample_count': 'samples',
    'changeable': 'changeable',
    'created_at': 'created',
    'updated_at': 'updated',
    'average_signal': 'average_signal',
    'site_id': 'enodeb',
    'sector_id': 'sector_id',
}

# EstimatedSite field -> output column
SITE_COLUMNS = {
    'mcc': 'mcc',
    'mnc': 'mnc',
    'lon': 'lon',
    'lat': 'lat',
    'site_id': 'enodeb',
    'observation_count': 'observation_count',
    'fallback': 'fallback',
}


def observations_output_frame(observations: Iterable[Observation]) -> pd.DataFrame:
    """Observations frame with output column names, in output column order."""
    df = observations_to_frame(observations)
    return df[list(OBSERVATION_COLUMNS)].rename(columns=OBSERVATION_COLUMNS)


def sites_to_frame(sites: Dict[SiteKey, EstimatedSite]) -> pd.DataFrame:
    """
    Build a DataFrame of site estimates, sorted by (mcc, mnc, site_id).

    Args:
        sites: Site estimates keyed by SiteKey

    Returns:
        DataFrame with one row per site
    """
    records = [site.model_dump() for site in sort_sites(sites)]
    df = pd.DataFrame.from_records(records, columns=list(SITE_COLUMNS))
    return df.rename(columns=SITE_COLUMNS)


class ResultEmitter(ABC):
    """Abstract base class for result emitters."""

    @abstractmethod
    def emit_observations(self, observations: Sequence[Observation]) -> int:
        """Write cleaned observations; returns the number of rows written."""
        pass

    @abstractmethod
    def emit_sites(self, sites: Dict[SiteKey, EstimatedSite]) -> int:
        """Write site estimates; returns the number of rows written."""
        pass


class CSVResultEmitter(ResultEmitter):
    """Emitter writing CSV files."""

    def __init__(
        self,
        observations_path: Path,
        sites_path: Path,
        observation_mcc: Optional[List[int]] = None,
    ):
        """
        Initialize CSV emitter.

        Args:
            observations_path: Destination of the cleaned observations
            sites_path: Destination of the site estimates
            observation_mcc: If set, only observations with these mcc values
                are written
        """
        self.observations_path = Path(observations_path)
        self.sites_path = Path(sites_path)
        self.observation_mcc = set(observation_mcc) if observation_mcc else None

    def _write(self, df: pd.DataFrame, path: Path) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            df.to_csv(path, index=False, float_format='%.6f')
        except OSError as e:
            raise OutputError(f"Failed to write {path}: {e}") from e

    def emit_observations(self, observations: Sequence[Observation]) -> int:
        if self.observation_mcc is not None:
            observations = [obs for obs in observations if obs.mcc in self.observation_mcc]

        df = observations_output_frame(observations)
        if len(df) > 0:
            df['changeable'] = df['changeable'].map({True: 'true', False: 'false'})

        self._write(df, self.observations_path)
        logger.info("observations_written", path=str(self.observations_path), rows=len(df))
        return len(df)

    def emit_sites(self, sites: Dict[SiteKey, EstimatedSite]) -> int:
        df = sites_to_frame(sites)
        self._write(df, self.sites_path)
        logger.info("sites_written", path=str(self.sites_path), rows=len(df))
        return len(df)


class SQLResultEmitter(ResultEmitter):
    """Emitter appending rows to database tables."""

    def __init__(
        self,
        connection_string: str,
        observations_table: str = "cell_observations",
        sites_table: str = "estimated_sites",
        persist_sites: bool = True,
        batch_size: int = 10000,
    ):
        """
        Initialize SQL emitter.

        Args:
            connection_string: SQLAlchemy database URL
            observations_table: Table receiving observations
            sites_table: Table receiving site estimates
            persist_sites: If False, emit_sites is a no-op
            batch_size: Rows per INSERT batch
        """
        self.connection_string = connection_string
        self.observations_table = observations_table
        self.sites_table = sites_table
        self.persist_sites = persist_sites
        self.batch_size = batch_size
        self._engine = None

        logger.info(
            "sql_emitter_initialized",
            observations_table=observations_table,
            sites_table=sites_table if persist_sites else None,
        )

    def _get_engine(self):
        """Get or create SQLAlchemy engine."""
        if self._engine is None:
            try:
                self._engine = create_engine(self.connection_string)
                logger.info("sql_engine_created")
            except (SQLAlchemyError, ImportError) as e:
                raise OutputError(f"Failed to create database connection: {e}") from e
        return self._engine

    def _append(self, df: pd.DataFrame, table: str) -> None:
        try:
            df.to_sql(
                table,
                self._get_engine(),
                if_exists='append',
                index=False,
                chunksize=self.batch_size,
            )
        except SQLAlchemyError as e:
            raise OutputError(f"Failed to write table {table}: {e}") from e

    def emit_observations(self, observations: Sequence[Observation]) -> int:
        df = observations_output_frame(observations)
        if len(df) == 0:
            logger.warning("no_observations_to_persist")
            return 0
        self._append(df, self.observations_table)
        logger.info("observations_persisted", table=self.observations_table, rows=len(df))
        return len(df)

    def emit_sites(self, sites: Dict[SiteKey, EstimatedSite]) -> int:
        if not self.persist_sites:
            return 0
        df = sites_to_frame(sites)
        if len(df) == 0:
            logger.warning("no_sites_to_persist")
            return 0
        self._append(df, self.sites_table)
        logger.info("sites_persisted", table=self.sites_table, rows=len(df))
        return len(df)

    def close(self) -> None:
        """Dispose of the engine's connection pool."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None


def create_emitters(config: PipelineConfig) -> List[ResultEmitter]:
    """
    Factory function to create the emitters enabled in the config.

    Args:
        config: Pipeline configuration

    Returns:
        Enabled emitters (CSV first, then database)

    Example:
        >>> config = load_pipeline_config(Path("config/pipeline_config.json"))
        >>> for emitter in create_emitters(config):
        ...     emitter.emit_sites(result.sites)
    """
    emitters: List[ResultEmitter] = []

    if config.outputs.enabled:
        emitters.append(CSVResultEmitter(
            observations_path=config.outputs.observations_path,
            sites_path=config.outputs.sites_path,
            observation_mcc=config.outputs.observation_mcc,
        ))

    if config.database.enabled:
        db = config.database
        emitters.append(SQLResultEmitter(
            connection_string=db.get_connection_string(),
            observations_table=db.observations_table,
            sites_table=db.sites_table,
            persist_sites=db.persist_sites,
            batch_size=db.batch_size,
        ))

    return emitters
