"""Configuration loading utilities for SkyPath."""

from .schema import (
    EngineConfig,
    ScenarioConfig,
    load_config,
)

__all__ = ["EngineConfig", "ScenarioConfig", "load_config"]
