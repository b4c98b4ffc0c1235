"""
Snippet classifier: decides which snippets are handed to a checker.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, Union

from snipcheck.config.config import ClassifierSettings
from snipcheck.protocols import Snippet


class Classification(Enum):
    """Whether a snippet is validated or skipped."""

    EXECUTABLE = "executable"
    NON_EXECUTABLE = "non_executable"


class LanguageTag(str, Enum):
    """
    Well-known fence tags.

    Tags outside this set remain plain strings; the allow-list in
    ClassifierSettings decides what is executable, not this enum.
    """

    PYTHON = "python"
    PYCON = "pycon"
    SHELL = "shell"
    BASH = "bash"
    SH = "sh"
    CONSOLE = "console"
    POWERSHELL = "powershell"
    TEXT = "text"
    JSON = "json"
    YAML = "yaml"
    TOML = "toml"
    RAKU = "raku"
    UNSPECIFIED = ""

    @classmethod
    def parse(cls, tag: str) -> Union["LanguageTag", str]:
        try:
            return cls(tag)
        except ValueError:
            return tag

    @classmethod
    def metric_label(cls, tag: str) -> str:
        """Bounded label value for metrics: known tags as-is, everything else "other"."""
        parsed = cls.parse(tag)
        if isinstance(parsed, cls):
            return parsed.value or "unspecified"
        return "other"


class SnippetClassifier:
    """
    Pure function of the tag string against a configurable allow-list.

    Aliases are resolved first, then the canonical tag is compared with
    ``executable_tags``. With ``case_sensitive`` off (the default) both sides
    are case-folded, so ``Python`` and ``PYTHON`` behave like ``python``.
    """

    def __init__(self, settings: ClassifierSettings) -> None:
        self.settings = settings
        self._aliases: Dict[str, str] = {self._fold(k): self._fold(v) for k, v in settings.aliases.items()}
        self._executable: FrozenSet[str] = frozenset(
            self._aliases.get(self._fold(tag), self._fold(tag)) for tag in settings.executable_tags
        )

    @property
    def executable_tags(self) -> FrozenSet[str]:
        return self._executable

    def canonical_tag(self, tag: str) -> str:
        folded = self._fold(tag.strip())
        return self._aliases.get(folded, folded)

    def classify(self, item: Union[Snippet, str]) -> Classification:
        tag = item.tag if isinstance(item, Snippet) else item
        canonical = self.canonical_tag(tag)
        if canonical and canonical in self._executable:
            return Classification.EXECUTABLE
        return Classification.NON_EXECUTABLE

    def is_executable(self, item: Union[Snippet, str]) -> bool:
        return self.classify(item) is Classification.EXECUTABLE

    def _fold(self, tag: str) -> str:
        return tag if self.settings.case_sensitive else tag.casefold()
