"""
Configuration management using YAML files and dataclasses.

This module defines all configuration dataclasses and provides loading
from YAML files with defaults. Configuration sections:
- TransportConfig: Workflow endpoint, credential, timeout and retry settings
- PipelineConfig: Recency window, deduplication and date handling
- LoggingConfig: Logging behavior
- AppConfig: Root configuration container
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from typing import Any

import yaml


@dataclass
class TransportConfig:
    """Configuration for calling the workflow engine.

    Attributes:
        endpoint: Workflow API endpoint (bare domain, /ext/v1 base, or full run URL)
        api_key: Optional inline API key (overrides env var)
        endpoint_env: Environment variable name containing the endpoint
        api_key_env: Environment variable name containing the API key
        timeout_seconds: Wall-clock limit for the whole call, retries included
        max_retries: Retries after the first attempt on 5xx/connection failures
        backoff_base: Linear backoff step in seconds (sleep = backoff_base * attempt)
        mode: "blocking" or "streaming"
        user: Caller identifier sent with each run
        inputs: Opaque workflow inputs forwarded as-is
        trust_env: Whether to respect system proxy settings
    """

    endpoint: str | None = None
    api_key: str | None = None
    endpoint_env: str = "MISO_ENDPOINT"
    api_key_env: str = "MISO_API_KEY"
    timeout_seconds: float = 300.0
    max_retries: int = 2
    backoff_base: float = 1.0
    mode: str = "blocking"
    user: str = "news-briefing"
    inputs: dict[str, Any] = field(default_factory=dict)
    trust_env: bool = True


@dataclass
class PipelineConfig:
    """Configuration for post-transport processing.

    Attributes:
        recency_window_hours: Items older than this (relative to now) are dropped
        dedup_enabled: Whether to drop repeated items
        title_similarity_threshold: Fuzzy match threshold (0-100) for title similarity
        source_utc_offset_hours: UTC offset assumed for upstream dates without a zone
    """

    recency_window_hours: float = 24.0
    dedup_enabled: bool = True
    title_similarity_threshold: int = 92
    source_utc_offset_hours: float = 0.0


@dataclass
class LoggingConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
        console: Whether to log to console
        file: Whether to log to file (requires a log directory)
        format: Log file format ("jsonl" or "plain")
        filename: Name of the log file
    """

    level: str = "INFO"
    console: bool = True
    file: bool = False
    format: str = "jsonl"
    filename: str = "ingest.jsonl"


@dataclass
class AppConfig:
    """Root configuration container aggregating all config sections."""

    transport: TransportConfig = field(default_factory=TransportConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: str | None) -> AppConfig:
    """Load configuration from a YAML file with defaults."""
    if not path:
        return AppConfig()

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    return _merge_config(AppConfig(), raw)


def _merge_config(base: AppConfig, raw: dict[str, Any]) -> AppConfig:
    """Merge raw YAML config into base AppConfig."""
    data = _asdict(base)
    for key, value in raw.items():
        if key not in data:
            continue
        if isinstance(value, dict) and isinstance(data[key], dict):
            data[key].update({k: v for k, v in value.items() if k in data[key]})
    return _fromdict(data)


def _asdict(cfg: AppConfig) -> dict[str, Any]:
    """Convert AppConfig to nested dictionary."""
    return {
        "transport": {
            "endpoint": cfg.transport.endpoint,
            "api_key": cfg.transport.api_key,
            "endpoint_env": cfg.transport.endpoint_env,
            "api_key_env": cfg.transport.api_key_env,
            "timeout_seconds": cfg.transport.timeout_seconds,
            "max_retries": cfg.transport.max_retries,
            "backoff_base": cfg.transport.backoff_base,
            "mode": cfg.transport.mode,
            "user": cfg.transport.user,
            "inputs": dict(cfg.transport.inputs),
            "trust_env": cfg.transport.trust_env,
        },
        "pipeline": {
            "recency_window_hours": cfg.pipeline.recency_window_hours,
            "dedup_enabled": cfg.pipeline.dedup_enabled,
            "title_similarity_threshold": cfg.pipeline.title_similarity_threshold,
            "source_utc_offset_hours": cfg.pipeline.source_utc_offset_hours,
        },
        "logging": {
            "level": cfg.logging.level,
            "console": cfg.logging.console,
            "file": cfg.logging.file,
            "format": cfg.logging.format,
            "filename": cfg.logging.filename,
        },
    }


def _fromdict(data: dict[str, Any]) -> AppConfig:
    """Reconstruct AppConfig from nested dictionary."""
    return AppConfig(
        transport=TransportConfig(**data["transport"]),
        pipeline=PipelineConfig(**data["pipeline"]),
        logging=LoggingConfig(**data["logging"]),
    )


def get_api_key(cfg: TransportConfig) -> str | None:
    """Get API key from inline config or environment variable."""
    if cfg.api_key:
        return cfg.api_key
    return os.getenv(cfg.api_key_env) or None


def get_endpoint(cfg: TransportConfig) -> str | None:
    """Get workflow endpoint from inline config or environment variable."""
    if cfg.endpoint:
        return cfg.endpoint
    return os.getenv(cfg.endpoint_env) or None
