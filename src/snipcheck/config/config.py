"""
Configuration management for snipcheck using Pydantic.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Set

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from snipcheck.exceptions import ConfigurationError

# --- Setup Logging ---
log = logging.getLogger(__name__)

DEFAULT_TAG = "python"

# --- Nested Configuration Models ---


class ScannerSettings(BaseModel):
    """Which files under the root count as documentation."""

    include: List[str] = Field(
        default_factory=lambda: ["*.md", "*.markdown"],
        description="Glob patterns (matched against file names) of documents to scan.",
    )
    exclude: List[str] = Field(
        default_factory=lambda: [".git", "node_modules", ".venv", "__pycache__"],
        description="Directory or file name patterns pruned from the walk.",
    )
    encoding: str = Field(default="utf-8", description="Text encoding of documentation files.")
    follow_symlinks: bool = Field(default=False, description="Descend into symlinked directories.")

    @field_validator("include")
    @classmethod
    def validate_include(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("include must contain at least one pattern")
        return v


class ExtractionSettings(BaseModel):
    """Fenced block recognition."""

    fence_chars: str = Field(default="`~", description="Characters that may open a fence.")
    min_fence_length: int = Field(default=3, ge=3, description="Minimum run of fence characters.")
    max_indent: int = Field(default=3, ge=0, description="Maximum indentation of a fence line.")

    @field_validator("fence_chars")
    @classmethod
    def validate_fence_chars(cls, v: str) -> str:
        if not v or any(ch not in "`~" for ch in v):
            raise ValueError("fence_chars may only contain '`' and '~'")
        return v


class ClassifierSettings(BaseModel):
    """Which language tags are validated."""

    executable_tags: Set[str] = Field(
        default_factory=lambda: {DEFAULT_TAG},
        description="Tags whose snippets are handed to a checker.",
    )
    case_sensitive: bool = Field(default=False, description="Compare tags case-sensitively.")
    aliases: Dict[str, str] = Field(
        default_factory=lambda: {"py": "python", "python3": "python", "py3": "python"},
        description="Tag aliases resolved before the allow-list check.",
    )


class RunnerSettings(BaseModel):
    """Validation runner limits."""

    timeout: float = Field(default=10.0, description="Per-snippet checker timeout in seconds.")
    run_timeout: Optional[float] = Field(
        default=None, description="Timeout for the whole validation stage in seconds. None to disable."
    )
    max_concurrency: int = Field(default=4, ge=1, description="Number of concurrent checker workers.")
    crash_retries: int = Field(default=1, ge=0, description="Retries after a checker crash.")
    retry_wait: float = Field(default=0.1, ge=0.0, description="Seconds between crash retries.")

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout must be positive")
        return v

    @field_validator("run_timeout")
    @classmethod
    def validate_run_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("run_timeout must be positive")
        return v


class CommandCheckerSettings(BaseModel):
    """An external program used as the checker for one tag."""

    command: List[str] = Field(..., description="argv; '{file}' is replaced by a temp file holding the snippet.")
    suffix: str = Field(default=".txt", description="Suffix of the temp file passed as '{file}'.")
    stdin: bool = Field(default=False, description="Feed the snippet on stdin instead of a temp file.")
    env: Dict[str, str] = Field(default_factory=dict, description="Extra environment variables.")

    @field_validator("command")
    @classmethod
    def validate_command(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("command must not be empty")
        return v


class CheckerSettings(BaseModel):
    """Checker wiring per canonical tag."""

    builtin_python: bool = Field(default=True, description="Register the in-process Python syntax checker.")
    commands: Dict[str, CommandCheckerSettings] = Field(
        default_factory=dict, description="External command checkers keyed by tag."
    )
    poll_interval: float = Field(default=0.05, gt=0, description="Cancellation poll interval for commands.")


class MonitoringSettings(BaseModel):
    """Logging and metrics."""

    log_level: str = Field(default="WARNING", description="Logging level (e.g., DEBUG, INFO, WARNING).")
    log_format: Literal["console", "json"] = Field(default="console", description="Renderer for log records.")
    log_file: Optional[str] = Field(default=None, description="Path to log file. If None, logs to stderr.")
    metrics_file: Optional[str] = Field(
        default=None, description="Write Prometheus metrics in textfile format here after each run."
    )

    @field_validator("log_file", mode="before")
    @classmethod
    def create_parent_dir(cls, v: str | Path | None) -> str | None:
        if v is None:
            return None
        path = Path(v)
        path.parent.mkdir(parents=True, exist_ok=True)
        return str(path)


# --- Main Configuration Class ---


class Config(BaseSettings):
    project_name: str = "snipcheck"
    scanner: ScannerSettings = Field(default_factory=ScannerSettings)
    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    classifier: ClassifierSettings = Field(default_factory=ClassifierSettings)
    runner: RunnerSettings = Field(default_factory=RunnerSettings)
    checkers: CheckerSettings = Field(default_factory=CheckerSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    model_config = SettingsConfigDict(env_prefix="SNIPCHECK_", env_nested_delimiter="__", case_sensitive=False)

    @classmethod
    def from_yaml(cls, path: Path) -> Config:
        log.debug("Loading configuration from YAML file: %s", path)
        if not path.is_file():
            raise ConfigurationError(f"Configuration file not found or is not a file: {path}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                yaml_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Configuration file is not valid YAML: {path}: {e}") from e
        if not yaml_data:
            log.warning("Configuration file is empty: %s. Using default settings.", path)
            return cls.load({})
        if not isinstance(yaml_data, dict):
            raise ConfigurationError(f"Configuration file must contain a mapping: {path}")
        return cls.load(yaml_data)

    @classmethod
    def load(cls, data: Dict[str, Any]) -> Config:
        """Validate ``data``, converting pydantic errors to ConfigurationError."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def with_overrides(
        self,
        *,
        tags: Optional[List[str]] = None,
        timeout: Optional[float] = None,
        run_timeout: Optional[float] = None,
        max_concurrency: Optional[int] = None,
        log_level: Optional[str] = None,
        metrics_file: Optional[str] = None,
    ) -> Config:
        """Return a copy with CLI overrides applied and re-validated."""
        data = self.model_dump()
        if tags:
            data["classifier"]["executable_tags"] = set(tags)
        if timeout is not None:
            data["runner"]["timeout"] = timeout
        if run_timeout is not None:
            data["runner"]["run_timeout"] = run_timeout
        if max_concurrency is not None:
            data["runner"]["max_concurrency"] = max_concurrency
        if log_level is not None:
            data["monitoring"]["log_level"] = log_level
        if metrics_file is not None:
            data["monitoring"]["metrics_file"] = metrics_file
        return self.load(data)


def find_config_file(start: Optional[Path] = None) -> Path | None:
    current_dir = start or Path.cwd()
    paths_to_check = [
        current_dir / "snipcheck.yaml",
        current_dir / "snipcheck.yml",
        current_dir / ".snipcheck.yaml",
    ]
    for path in paths_to_check:
        if path.exists():
            return path
    return None
