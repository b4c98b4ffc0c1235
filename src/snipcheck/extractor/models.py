"""
Data models for fence parsing.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class Fence:
    """An opening code fence line."""

    line_number: int  # 1-indexed
    char: str
    length: int
    indent: int
    info: str

    def __post_init__(self) -> None:
        """Validate the fence."""
        if self.length < 3:
            raise ValueError("A fence needs at least three characters")

    def closes(self, char: str, length: int) -> bool:
        return char == self.char and length >= self.length
