"""
Tests for result emitters (CSV and SQL).
"""
import math

import pandas as pd
import pytest
from sqlalchemy import create_engine
from site_estimator.core.aggregation import aggregate
from site_estimator.data.schemas import Observation
from site_estimator.outputs.emitters import (
    CSVResultEmitter,
    SQLResultEmitter,
    create_emitters,
    observations_output_frame,
    sites_to_frame,
)
from site_estimator.utils.config import CSVOutputConfig, DatabaseConfig, PipelineConfig
from site_estimator.utils.exceptions import OutputError


def make_observation(lon, lat, samples, mcc=234, site_id=100, sector_id=0, changeable=True):
    return Observation(
        radio_type='LTE', mcc=mcc, mnc=10, tracking_area_code=500,
        physical_cell_id=3, lon=lon, lat=lat, range=1000,
        sample_count=samples, changeable=changeable, created_at=1500000000,
        updated_at=1500000100, average_signal=-90, site_id=site_id,
        sector_id=sector_id,
    )


@pytest.fixture
def observations():
    return [
        make_observation(-0.1, 51.5, 10, site_id=100, sector_id=1),
        make_observation(-0.3, 51.7, 10, site_id=100, sector_id=2, changeable=False),
        make_observation(2.35, 48.85, 1, mcc=208, site_id=7),
    ]


@pytest.fixture
def sites(observations):
    return aggregate(observations).sites


class TestFrames:
    """Test DataFrame conversion."""

    def test_observation_columns_and_dtypes(self, observations):
        df = observations_output_frame(observations)

        assert list(df.columns) == [
            'radio', 'mcc', 'mnc', 'tac', 'pci', 'lon', 'lat', 'range', 'samples',
            'changeable', 'created', 'updated', 'average_signal', 'enodeb', 'sector_id',
        ]
        assert df['mcc'].dtype == 'uint16'
        assert df['average_signal'].dtype == 'int16'
        assert df['enodeb'].dtype == 'uint32'

    def test_empty_observations(self):
        df = observations_output_frame([])
        assert len(df) == 0
        assert 'enodeb' in df.columns

    def test_sites_sorted(self, sites):
        df = sites_to_frame(sites)

        assert list(df.columns) == ['mcc', 'mnc', 'lon', 'lat', 'enodeb', 'observation_count', 'fallback']
        assert df['mcc'].tolist() == [208, 234]
        assert df['fallback'].tolist() == [True, False]


class TestCSVResultEmitter:
    """Test CSV output."""

    def test_writes_both_files(self, tmp_path, observations, sites):
        emitter = CSVResultEmitter(tmp_path / "obs.csv", tmp_path / "sites.csv")

        assert emitter.emit_observations(observations) == 3
        assert emitter.emit_sites(sites) == 2

        obs_df = pd.read_csv(tmp_path / "obs.csv", dtype=str)
        assert obs_df['changeable'].tolist() == ['true', 'false', 'true']
        assert obs_df['lon'].iloc[0] == '-0.100000'
        assert obs_df['enodeb'].tolist() == ['100', '100', '7']

        sites_df = pd.read_csv(tmp_path / "sites.csv")
        uk = sites_df[sites_df['mcc'] == 234].iloc[0]
        assert uk['lon'] == pytest.approx(-0.2)
        assert uk['lat'] == pytest.approx(51.6)
        assert uk['observation_count'] == 2

    def test_observation_mcc_filter(self, tmp_path, observations):
        emitter = CSVResultEmitter(tmp_path / "obs.csv", tmp_path / "sites.csv", observation_mcc=[234])

        assert emitter.emit_observations(observations) == 2

    def test_creates_parent_directory(self, tmp_path, sites):
        emitter = CSVResultEmitter(tmp_path / "a" / "obs.csv", tmp_path / "b" / "sites.csv")
        emitter.emit_sites(sites)
        assert (tmp_path / "b" / "sites.csv").exists()

    def test_write_failure_raises_output_error(self, tmp_path, sites):
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("")
        emitter = CSVResultEmitter(tmp_path / "obs.csv", blocker / "sites.csv")

        with pytest.raises(OutputError, match="Failed to write"):
            emitter.emit_sites(sites)


class TestSQLResultEmitter:
    """Test database output against SQLite."""

    def test_appends_rows(self, tmp_path, observations, sites):
        url = f"sqlite:///{tmp_path / 'cells.db'}"
        emitter = SQLResultEmitter(url, batch_size=2)

        assert emitter.emit_observations(observations) == 3
        assert emitter.emit_sites(sites) == 2
        emitter.emit_sites(sites)
        emitter.close()

        engine = create_engine(url)
        obs_df = pd.read_sql_table("cell_observations", engine)
        sites_df = pd.read_sql_table("estimated_sites", engine)
        engine.dispose()

        assert len(obs_df) == 3
        assert len(sites_df) == 4
        assert math.isclose(sites_df['lat'].iloc[1], 51.6)

    def test_persist_sites_disabled(self, tmp_path, sites):
        emitter = SQLResultEmitter(f"sqlite:///{tmp_path / 'cells.db'}", persist_sites=False)
        assert emitter.emit_sites(sites) == 0
        emitter.close()

    def test_empty_input_not_written(self, tmp_path):
        emitter = SQLResultEmitter(f"sqlite:///{tmp_path / 'cells.db'}")
        assert emitter.emit_observations([]) == 0
        assert emitter.emit_sites({}) == 0

    def test_bad_url_raises_output_error(self):
        emitter = SQLResultEmitter("notadialect://nowhere")
        with pytest.raises(OutputError, match="database connection"):
            emitter._get_engine()


def test_create_emitters(tmp_path, monkeypatch):
    monkeypatch.setenv("DB_NAME", "cells")
    config = PipelineConfig(
        outputs=CSVOutputConfig(base_path=tmp_path / "out"),
        database=DatabaseConfig(enabled=True),
    )

    emitters = create_emitters(config)

    assert [type(e) for e in emitters] == [CSVResultEmitter, SQLResultEmitter]
    assert emitters[0].sites_path == tmp_path / "out" / "estimated_sites.csv"


def test_create_emitters_csv_only(tmp_path):
    config = PipelineConfig(outputs=CSVOutputConfig(base_path=tmp_path / "out"))
    assert [type(e) for e in create_emitters(config)] == [CSVResultEmitter]
