"""Configuration models for snipcheck."""

from .config import (
    DEFAULT_TAG,
    CheckerSettings,
    ClassifierSettings,
    CommandCheckerSettings,
    Config,
    ExtractionSettings,
    MonitoringSettings,
    RunnerSettings,
    ScannerSettings,
    find_config_file,
)

__all__ = [
    "DEFAULT_TAG",
    "CheckerSettings",
    "ClassifierSettings",
    "CommandCheckerSettings",
    "Config",
    "ExtractionSettings",
    "MonitoringSettings",
    "RunnerSettings",
    "ScannerSettings",
    "find_config_file",
]
