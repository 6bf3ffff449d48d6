"""Configuration models using Pydantic for validation."""
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
import os

# Two hours in milliseconds.
DEFAULT_CHUNK_RANGE = 2 * 60 * 60 * 1000


class GlobalConfig(BaseModel):
    """Global configuration settings."""
    seed: Optional[int] = None
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "text"


class HeadOptions(BaseModel):
    """Options for the in-memory ingestion buffer."""
    chunk_range: int = Field(default=DEFAULT_CHUNK_RANGE, gt=0)


class CompactorOptions(BaseModel):
    """Options for the block compactor."""
    ranges: List[int] = Field(default_factory=lambda: [1000000])

    @field_validator('ranges')
    @classmethod
    def validate_ranges(cls, v):
        """Ranges must be positive and strictly increasing."""
        if not v:
            raise ValueError("At least one compaction range must be defined")
        if any(r <= 0 for r in v):
            raise ValueError("Compaction ranges must be positive")
        if any(b <= a for a, b in zip(v, v[1:])):
            raise ValueError("Compaction ranges must be strictly increasing")
        return v


class DBOptions(BaseModel):
    """Options for opening a storage instance."""
    head: HeadOptions = Field(default_factory=HeadOptions)


class FixtureSpec(BaseModel):
    """Parameters of one generated fixture batch."""
    total_series: int = Field(default=1, ge=0)
    label_count: int = Field(default=1, ge=0)
    min_time: int = 0
    max_time: int = 0
    seed: Optional[int] = None
    series_cap: Optional[int] = Field(default=None, ge=0)
    sampling_strategy: Literal["first_n", "hash"] = "first_n"


class Config(BaseModel):
    """Root configuration model."""
    model_config = ConfigDict(populate_by_name=True)

    global_: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    head: HeadOptions = Field(default_factory=HeadOptions)
    compactor: CompactorOptions = Field(default_factory=CompactorOptions)
    db: DBOptions = Field(default_factory=DBOptions)
    fixtures: FixtureSpec = Field(default_factory=FixtureSpec)

    @model_validator(mode='after')
    def inherit_global_seed(self):
        """Fixtures without their own seed use the global one."""
        if self.fixtures.seed is None and self.global_.seed is not None:
            self.fixtures.seed = self.global_.seed
        return self


def load_config(config_path: str) -> Config:
    """Load and validate configuration from YAML file."""
    import yaml

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        raw_config = yaml.safe_load(f) or {}

    # Apply environment variable overrides
    raw_config["global"] = raw_config.get("global") or {}

    if env_log_level := os.getenv('LOG_LEVEL'):
        raw_config["global"]["log_level"] = env_log_level

    if env_seed := os.getenv('TSFIXTURE_SEED'):
        raw_config["global"]["seed"] = env_seed

    try:
        return Config(**raw_config)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}") from e
