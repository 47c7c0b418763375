"""
Configuration management for PageChunk using Pydantic.

Every numeric threshold used by the filter, the strategies and the
auto-selector lives here so deployments can tune them through YAML or
``PAGECHUNK_*`` environment variables.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, ClassVar, List, Literal, cast

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Setup Logging ---
log = logging.getLogger(__name__)

# --- Nested Configuration Models ---


class CleaningConfig(BaseModel):
    """Thresholds for the density filter."""

    parser: Literal["html.parser", "lxml"] = Field(default="html.parser", description="BeautifulSoup parser.")
    link_density_threshold: float = Field(
        default=0.3, ge=0, le=1, description="Blocks with a higher anchor-text ratio are dropped."
    )
    min_text_length: int = Field(default=25, ge=0, description="Character floor for a block at body depth.")
    min_text_floor: int = Field(default=8, ge=0, description="Lower bound of the depth-scaled floor.")
    depth_decay: float = Field(default=0.9, gt=0, le=1, description="Per-level decay of the text floor.")
    high_link_density: float = Field(
        default=0.8, ge=0, le=1, description="Link density that drops a block regardless of length."
    )
    positive_keywords: List[str] = Field(
        default_factory=lambda: ["article", "content", "post", "main", "body", "text", "entry", "story"]
    )
    negative_keywords: List[str] = Field(
        default_factory=lambda: [
            "nav",
            "sidebar",
            "ad",
            "ads",
            "cookie",
            "share",
            "related",
            "footer",
            "header",
            "comment",
            "comments",
            "widget",
            "menu",
            "social",
            "promo",
            "banner",
            "sponsor",
            "sponsored",
        ]
    )
    positive_weight: float = 0.2
    negative_weight: float = 0.3
    rich_text_length: int = Field(
        default=200, ge=1, description="Text length at which a block counts as fully text-rich when offsetting bias."
    )


class ChunkingConfig(BaseModel):
    """Default chunk sizing and strategy tuning."""

    max_chunk_size: int = Field(default=1000, gt=0, description="Maximum chunk length in characters.")
    min_chunk_size: int = Field(default=100, gt=0, description="Minimum chunk length in characters.")
    overlap_size: int = Field(default=100, ge=0, description="Characters shared between adjacent chunks.")
    semantic_threshold: float = Field(default=0.7, ge=0, le=1, description="Cut below this similarity.")
    semantic_window: int = Field(default=2, ge=1, description="Sentences per candidate window.")
    embedding_batch_size: int = Field(default=32, ge=1)
    streaming_threshold: int = Field(
        default=100_000, gt=0, description="MemoryOptimized switches to streaming mode above this many characters."
    )
    streaming_window: int = Field(default=512, gt=0, description="Characters read per window in streaming mode.")
    min_cut_ratio: float = Field(
        default=0.33, gt=0, lt=1, description="Natural boundaries closer than this fraction of max are ignored."
    )


class SelectionConfig(BaseModel):
    """Auto-selection heuristics."""

    large_document_threshold: int = Field(default=100_000, gt=0)
    long_form_threshold: int = Field(default=10_000, gt=0)
    image_content_threshold: int = Field(default=5_000, ge=0)
    min_images_for_structure: int = Field(default=2, ge=1)
    technical_keyword_hits: int = Field(default=3, ge=1)
    code_marker_hits: int = Field(default=3, ge=1)
    heading_hits: int = Field(default=5, ge=1)
    dom_heading_hits: int = Field(default=3, ge=1)
    technical_keywords: List[str] = Field(
        default_factory=lambda: [
            "class",
            "function",
            "method",
            "api",
            "code",
            "example",
            "parameter",
            "return",
            "import",
            "export",
            "interface",
        ]
    )
    metadata_rich_domains: List[str] = Field(
        default_factory=lambda: ["github.com", "stackoverflow.com", "medium.com", "dev.to", "wikipedia.org"]
    )
    metadata_rich_prefixes: List[str] = Field(
        default_factory=lambda: ["docs.", "api.", "learn.", "guide.", "manual.", "developer."]
    )


class QualityConfig(BaseModel):
    """Configuration for content quality evaluation."""

    main_content_min_words: int = Field(default=50, ge=0)
    ideal_min_words: int = Field(default=100, ge=0)
    ideal_max_words: int = Field(default=5000, ge=0)
    ad_saturation_count: int = Field(default=20, gt=0, description="Ad markers that saturate ad density at 1.0.")
    paywall_keywords: List[str] = Field(
        default_factory=lambda: [
            "paywall",
            "subscriber-only",
            "members only",
            "sign up to read",
            "subscribe to continue",
            "paid content",
            "premium-content",
            "paid-article",
            "paywall-content",
            "exclusive content",
        ]
    )
    login_keywords: List[str] = Field(
        default_factory=lambda: ["login to continue", "log in to continue", "sign in to continue", "login-required"]
    )
    ad_indicators: List[str] = Field(
        default_factory=lambda: [
            "ad-container",
            "ad-wrapper",
            "advertisement",
            "sponsored",
            "google-ad",
            "adsense",
            "ad-unit",
            "ad-slot",
            "banner-ad",
            "promoted-content",
            "sponsored-content",
            "native-ad",
        ]
    )


class MonitoringConfig(BaseModel):
    """Configuration for logging and metrics."""

    enabled: bool = True
    log_level: str = Field(default="INFO", description="Logging level (e.g., DEBUG, INFO, WARNING).")
    log_file: str | None = Field(default=None, description="Path to log file. If None, logs to console.")
    metrics_enabled: bool = Field(default=True, description="Record Prometheus metrics.")

    @field_validator("log_file", mode="before")
    @classmethod
    def create_parent_dir(cls, v: str | Path | None) -> str | None:
        if v is None:
            return None
        path = Path(v)
        path.parent.mkdir(parents=True, exist_ok=True)
        return str(path)


class Config(BaseSettings):
    project_name: str = "PageChunk"
    version: str = "0.1.0"
    cleaning: CleaningConfig = Field(default_factory=CleaningConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    selection: SelectionConfig = Field(default_factory=SelectionConfig)
    quality: QualityConfig = Field(default_factory=QualityConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = SettingsConfigDict(env_prefix="PAGECHUNK_", env_nested_delimiter="__", case_sensitive=False)

    @classmethod
    def from_yaml(cls, path: Path) -> Config:
        log.debug("Loading configuration from YAML file: %s", path)
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found or is not a file: {path}")
        with open(path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
        if not yaml_data:
            log.warning("Configuration file is empty: %s. Using default settings.", path)
            return cls.model_validate({})
        return cls.model_validate(yaml_data)


def find_config_file() -> Path | None:
    current_dir = Path.cwd()
    for path in (current_dir / "pagechunk.yaml", current_dir / "pagechunk.yml"):
        if path.exists():
            return path
    return None


# --- Lazy Configuration Loader ---


class LazyConfig:
    """
    A proxy for the Config object that delays its loading and validation
    until an attribute is first accessed, so a bad config file cannot crash
    an import.
    """

    _config: ClassVar[Config | None] = None
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __getattr__(self, name: str) -> Any:
        if self.__class__._config is None:
            with self.__class__._lock:
                if self.__class__._config is None:
                    self.__class__._config = self._load_config_with_fallback()
        return getattr(self.__class__._config, name)

    @classmethod
    def reset(cls) -> None:
        """Forget the loaded config; the next access reloads it."""
        with cls._lock:
            cls._config = None

    def _load_config_with_fallback(self) -> Config:
        config_path = find_config_file()
        if config_path:
            try:
                log.info("Lazy loading configuration from: %s", config_path)
                return Config.from_yaml(config_path)
            except (ValidationError, FileNotFoundError, yaml.YAMLError) as e:
                log.error(
                    "Failed to load or validate configuration from '%s': %s. Falling back to default settings.",
                    config_path,
                    e,
                    exc_info=log.getEffectiveLevel() <= logging.DEBUG,
                )
        else:
            log.debug("No config file found. Using default settings for lazy load.")

        try:
            return Config()
        except ValidationError as e:
            log.critical("FATAL: Default configuration is invalid: %s", e, exc_info=True)
            raise RuntimeError(f"Default configuration is invalid, cannot start: {e}") from e


# --- Global Settings Instance ---
settings: "Config" = cast("Config", LazyConfig())
