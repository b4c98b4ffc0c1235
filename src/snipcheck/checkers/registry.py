"""
Maps canonical language tags to checkers.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

import structlog

from snipcheck.config.config import DEFAULT_TAG, CheckerSettings
from snipcheck.protocols import Checker

from .command_checker import CommandChecker
from .python_checker import PythonSyntaxChecker

logger = structlog.get_logger(__name__)


class CheckerRegistry:
    """Checker lookup keyed by canonical tag."""

    def __init__(self, normalize: Optional[Callable[[str], str]] = None) -> None:
        self._normalize = normalize or (lambda tag: tag)
        self._checkers: Dict[str, Checker] = {}

    @classmethod
    def from_settings(cls, settings: CheckerSettings, normalize: Optional[Callable[[str], str]] = None) -> CheckerRegistry:
        registry = cls(normalize)
        if settings.builtin_python:
            registry.register(DEFAULT_TAG, PythonSyntaxChecker())
        # Configured commands win over the built-in checker for the same tag
        for tag, command in settings.commands.items():
            registry.register(tag, CommandChecker(tag, command, poll_interval=settings.poll_interval))
        return registry

    def register(self, tag: str, checker: Checker) -> None:
        if not isinstance(checker, Checker):
            raise TypeError(f"{checker!r} does not implement the Checker protocol")
        key = self._normalize(tag)
        if key in self._checkers:
            logger.debug("Replacing checker", tag=key, old=self._checkers[key].name, new=checker.name)
        self._checkers[key] = checker

    def get(self, tag: str) -> Optional[Checker]:
        return self._checkers.get(self._normalize(tag))

    def tags(self) -> List[str]:
        return sorted(self._checkers)

    def __contains__(self, tag: str) -> bool:
        return self._normalize(tag) in self._checkers

    def __len__(self) -> int:
        return len(self._checkers)
