"""
Pipeline configuration.

Supports JSON or YAML configuration with:
- Cell export input and record filters
- CSV outputs for cleaned observations and site estimates
- Optional PostgreSQL persistence
- Processing parameters
"""

import json
import os
import re
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from site_estimator.utils.exceptions import ConfigurationError


def _expand_env_vars(value: str) -> str:
    """Expand ${VAR} references from the environment (missing vars expand to '')."""
    pattern = r'\$\{([^}]+)\}'

    def replace_var(match):
        var_name = match.group(1)
        return os.environ.get(var_name, '')

    return re.sub(pattern, replace_var, value)


class InputConfig(BaseModel):
    """Configuration for the cell export input."""
    path: Path = Path("MLS-full-cell-export.csv")
    has_header: bool = True
    chunk_size: int = Field(200000, ge=1000, description="Records read per chunk")
    radio_types: Optional[List[str]] = Field(default_factory=lambda: ["LTE"])
    mcc: Optional[List[str]] = Field(None, description="Raw mcc values to keep (None = all)")
    mnc: Optional[List[str]] = Field(None, description="Raw mnc values to keep (None = all)")

    @field_validator('path', mode='before')
    @classmethod
    def expand_path(cls, v):
        if isinstance(v, str):
            return Path(_expand_env_vars(v))
        return v

    @field_validator('mcc', 'mnc', 'radio_types', mode='before')
    @classmethod
    def stringify(cls, v):
        """Allow numeric codes in config files; filters compare raw text."""
        if isinstance(v, (list, tuple)):
            return [str(item) for item in v]
        return v


class CSVOutputConfig(BaseModel):
    """Configuration for CSV outputs."""
    enabled: bool = True
    base_path: Path = Path("output")
    observations_file: str = "observations.csv"
    sites_file: str = "estimated_sites.csv"
    observation_mcc: Optional[List[int]] = Field(
        None, description="Only write observations with these mcc values (None = all)"
    )

    @field_validator('base_path', mode='before')
    @classmethod
    def expand_and_create_path(cls, v):
        if isinstance(v, str):
            v = Path(_expand_env_vars(v))
        if isinstance(v, Path):
            v.mkdir(parents=True, exist_ok=True)
        return v

    @property
    def observations_path(self) -> Path:
        return self.base_path / self.observations_file

    @property
    def sites_path(self) -> Path:
        return self.base_path / self.sites_file


class DatabaseConfig(BaseModel):
    """Configuration for PostgreSQL persistence."""
    model_config = ConfigDict(validate_default=True)

    enabled: bool = False
    host: str = "${DB_HOST}"
    port: int = 5432
    database: str = "${DB_NAME}"
    username: str = "${DB_USER}"
    password: str = "${DB_PASSWORD}"
    sslmode: str = "${DB_SSLMODE}"
    observations_table: str = "cell_observations"
    sites_table: str = "estimated_sites"
    persist_sites: bool = True
    batch_size: int = Field(10000, ge=1)

    @field_validator('host', 'database', 'username', 'password', 'sslmode', mode='after')
    @classmethod
    def expand_env(cls, v):
        if isinstance(v, str):
            return _expand_env_vars(v)
        return v

    @field_validator('sslmode', mode='after')
    @classmethod
    def default_sslmode(cls, v):
        return v or "disable"

    def get_connection_string(self) -> str:
        """Build the SQLAlchemy PostgreSQL connection URL."""
        return (
            f"postgresql://{self.username}:{self.password}@{self.host}:{self.port}"
            f"/{self.database}?sslmode={self.sslmode}"
        )


class ProcessingConfig(BaseModel):
    """Processing configuration."""
    chunk_size: int = Field(100000, ge=1000, description="Observations per aggregation chunk")


class PipelineConfig(BaseModel):
    """Complete pipeline configuration."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    version: str = "1.0"
    inputs: InputConfig = Field(default_factory=InputConfig)
    outputs: CSVOutputConfig = Field(default_factory=CSVOutputConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)

    @model_validator(mode='after')
    def validate_outputs(self):
        """At least one output must be enabled, and an enabled database needs a name."""
        if not self.outputs.enabled and not self.database.enabled:
            raise ValueError("No output enabled: enable CSV outputs or the database")
        if self.database.enabled and not self.database.database:
            raise ValueError("Database output enabled but no database name configured")
        return self


def load_pipeline_config(config_path: Path) -> PipelineConfig:
    """
    Load pipeline configuration from a JSON or YAML file.

    Args:
        config_path: Path to .json, .yaml or .yml config file

    Returns:
        Validated PipelineConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigurationError: If the extension is not supported or the file is malformed
        ValidationError: If config validation fails

    Example:
        >>> config = load_pipeline_config(Path("config/pipeline_config.json"))
        >>> config.inputs.radio_types
        ['LTE']
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()
    if suffix not in ('.json', '.yaml', '.yml'):
        raise ConfigurationError(f"Unsupported config format: {config_path.suffix}")

    with open(config_path, 'r') as f:
        try:
            if suffix == '.json':
                config_dict = json.load(f)
            else:
                config_dict = yaml.safe_load(f) or {}
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Malformed config file {config_path}: {e}") from e

    return PipelineConfig(**config_dict)


def create_default_config(
    input_path: Path,
    output_path: Path,
    radio_types: Optional[List[str]] = None,
) -> PipelineConfig:
    """
    Create a default pipeline configuration.

    Args:
        input_path: Path to the cell export
        output_path: Directory for CSV outputs
        radio_types: Radio types to keep (default: LTE)

    Returns:
        Default PipelineConfig
    """
    return PipelineConfig(
        version="1.0",
        inputs=InputConfig(
            path=input_path,
            radio_types=radio_types if radio_types is not None else ["LTE"],
        ),
        outputs=CSVOutputConfig(base_path=output_path),
        database=DatabaseConfig(),
        processing=ProcessingConfig(),
    )


def save_pipeline_config(config: PipelineConfig, config_path: Path) -> None:
    """
    Save pipeline configuration to a JSON file.

    Args:
        config: PipelineConfig to save
        config_path: Path to save JSON file
    """
    config_path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = config.model_dump(mode='json')

    with open(config_path, 'w') as f:
        json.dump(config_dict, f, indent=2)
