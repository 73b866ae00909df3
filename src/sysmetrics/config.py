from __future__ import annotations
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SYSMETRICS_", case_sensitive=False)

    # Scrape endpoint
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000, ge=0, le=65535)

    # Sampling
    sample_interval_sec: float = Field(default=1.0, gt=0)
    lock_timeout_sec: float = Field(default=1.0, gt=0)
    enable_fragmentation: bool = True

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Allocation-policy simulator
    alloc_arena_bytes: int = Field(default=65536, gt=0)
    alloc_ops: int = Field(default=2000, ge=0)
    alloc_min_block: int = Field(default=16, gt=0)
    alloc_max_block: int = Field(default=2048, gt=0)
    alloc_free_ratio: float = Field(default=0.4, ge=0, le=1)
    alloc_seed: int = 0

settings = Settings()
