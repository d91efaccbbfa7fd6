"""Engine configuration and settings.

This module provides the configuration model and I/O functions for the
scan, score and clean pipeline.

Configuration is stored in ~/.config/declutter/config.toml. Every key is
optional; missing keys fall back to the model defaults.
"""

import logging
import os
import tomllib
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Annotated, Any

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from declutter.core.paths import ensure_config_dir, get_config_path

logger = logging.getLogger(__name__)


def _default_workers() -> int:
    """Return the logical CPU count, capped to the allowed worker range."""
    return max(1, min(os.cpu_count() or 1, 64))


class EngineConfig(BaseModel):
    """Configuration for one pipeline instance.

    Attributes:
        dry_run: Report what would be deleted without touching the filesystem.
        safe_mode: Refuse to delete paths on the critical deny-list.
        aggressive_mode: Lower the "safe to delete" recommendation threshold.
        parallel_workers: Worker pool size for scanning and deleting.
        enable_smart_detection: Run duplicate detection and score enhancement.
        enable_explanations: Ask the explanation collaborator for item texts.
        auto_backup: Snapshot items through the backup service before deleting.
        scan_timeout_seconds: Ceiling for the whole scan fan-out/fan-in.
        duplicate_phase_timeout: Budget for duplicate detection + enhancement.
        audit_phase_timeout: Budget for the risk audit phase.
        explanation_phase_timeout: Budget for explanation generation.
        category_timeout_seconds: Budget for deleting one category group.
        clean_timeout_seconds: Budget for a whole clean call.
        backup_timeout_seconds: Budget for the backup collaborator.
        safe_score_threshold: Minimum safety score for the "safe" bucket.
        index_expected_elements: Expected size of the incremental index.
        index_false_positive_rate: Target membership filter false-positive rate.
        index_fallback_sample: Entries re-checked per incremental update.
        extra_scan_paths: Additional roots scanned as category "other".
    """

    model_config = ConfigDict(extra="forbid")

    dry_run: bool = False
    safe_mode: bool = True
    aggressive_mode: bool = False
    parallel_workers: Annotated[
        int,
        Field(default_factory=_default_workers, ge=1, le=64, description="Worker count (1-64)"),
    ]
    enable_smart_detection: bool = True
    enable_explanations: bool = True
    auto_backup: bool = False

    scan_timeout_seconds: Annotated[
        float,
        Field(ge=10, le=3600, description="Whole-scan timeout (10-3600s)"),
    ] = 600.0
    duplicate_phase_timeout: Annotated[
        float,
        Field(ge=20, le=40, description="Duplicate detection budget (20-40s)"),
    ] = 30.0
    audit_phase_timeout: Annotated[
        float,
        Field(ge=40, le=90, description="Risk audit budget (40-90s)"),
    ] = 60.0
    explanation_phase_timeout: Annotated[
        float,
        Field(ge=20, le=40, description="Explanation budget (20-40s)"),
    ] = 30.0
    category_timeout_seconds: Annotated[
        float,
        Field(ge=1, le=3600, description="Per-category deletion timeout (1-3600s)"),
    ] = 600.0
    clean_timeout_seconds: Annotated[
        float,
        Field(ge=1, le=7200, description="Whole-clean timeout (1-7200s)"),
    ] = 1800.0
    backup_timeout_seconds: Annotated[
        float,
        Field(ge=1, le=3600, description="Backup call timeout (1-3600s)"),
    ] = 300.0

    safe_score_threshold: Annotated[int, Field(ge=0, le=100)] = 70

    index_expected_elements: Annotated[int, Field(ge=1)] = 100_000
    index_false_positive_rate: Annotated[float, Field(gt=0.0, lt=1.0)] = 0.01
    index_fallback_sample: Annotated[int, Field(ge=0)] = 256

    extra_scan_paths: Annotated[
        list[str],
        Field(default_factory=list, description="Extra roots scanned as 'other'"),
    ]

    @property
    def effective_safe_threshold(self) -> int:
        """Threshold used for the "safe to delete" bucket.

        Aggressive mode caps the threshold at 50, which still keeps clamped
        high-risk items (<= 25) out.
        """
        if self.aggressive_mode:
            return min(self.safe_score_threshold, 50)
        return self.safe_score_threshold

    @classmethod
    def aggressive(cls) -> "EngineConfig":
        """Preset that favours reclaiming space over caution."""
        return cls(safe_mode=False, aggressive_mode=True)

    @classmethod
    def paranoid(cls) -> "EngineConfig":
        """Preset that never deletes and always asks for a backup."""
        return cls(dry_run=True, safe_mode=True, auto_backup=True)


class ConfigError(Exception):
    """Base exception for configuration errors."""


class ConfigNotFoundError(ConfigError):
    """Raised when the config file is not found."""


class ConfigParseError(ConfigError):
    """Raised when the config file cannot be parsed."""


def load_config(path: Path | None = None) -> EngineConfig:
    """Load engine configuration from a TOML file.

    Args:
        path: Path to the config file. If None, uses the default config path.

    Returns:
        Validated EngineConfig object.

    Raises:
        ConfigNotFoundError: If the config file doesn't exist.
        ConfigParseError: If the TOML syntax is invalid.
        ConfigError: If the content doesn't match the schema.
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        raise ConfigNotFoundError(f"Config not found: {config_path}")

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigParseError(f"Invalid TOML syntax: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config: {e}") from e

    try:
        return EngineConfig.model_validate(data)
    except (ValueError, ValidationError) as e:
        raise ConfigError(f"Invalid config content: {e}") from e


def load_config_or_default(path: Path | None = None) -> EngineConfig:
    """Load the config file, falling back to defaults when it is absent.

    Parse and validation errors still propagate: a broken file is a user
    mistake worth reporting, a missing file is not.
    """
    try:
        return load_config(path)
    except ConfigNotFoundError:
        logger.debug("No config file found, using defaults")
        return EngineConfig()


def save_config(config: EngineConfig, path: Path | None = None) -> Path:
    """Save engine configuration to a TOML file.

    The file is written atomically by first writing to a temporary file
    and then using os.replace() for atomic rename. Only values that differ
    from the defaults are written.

    Args:
        config: The EngineConfig object to save.
        path: Path to save the config. If None, uses the default config path.

    Returns:
        Path where the config was saved.

    Raises:
        ConfigError: If the file cannot be written.
        RuntimeError: If the default config directory cannot be created.
    """
    config_path = path or get_config_path()
    if path is None:
        ensure_config_dir()
    else:
        config_path.parent.mkdir(parents=True, exist_ok=True)

    data = _config_to_dict(config)

    tmp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="wb",
            dir=config_path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            tomli_w.dump(data, f)
        os.replace(str(tmp_path), str(config_path))
    except OSError as e:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise ConfigError(f"Failed to write config: {e}") from e

    return config_path


def _config_to_dict(config: EngineConfig) -> dict[str, Any]:
    """Convert EngineConfig to a dictionary of non-default values.

    Args:
        config: The EngineConfig to convert.

    Returns:
        Dictionary ready for TOML serialization.
    """
    defaults = EngineConfig()
    current = config.model_dump()
    baseline = defaults.model_dump()
    return {key: value for key, value in current.items() if value != baseline[key]}
