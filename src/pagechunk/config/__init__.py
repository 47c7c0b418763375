"""Configuration models and the lazily loaded global ``settings``."""

from .config import (
    ChunkingConfig,
    CleaningConfig,
    Config,
    LazyConfig,
    MonitoringConfig,
    QualityConfig,
    SelectionConfig,
    find_config_file,
    settings,
)

__all__ = [
    "ChunkingConfig",
    "CleaningConfig",
    "Config",
    "LazyConfig",
    "MonitoringConfig",
    "QualityConfig",
    "SelectionConfig",
    "find_config_file",
    "settings",
]
