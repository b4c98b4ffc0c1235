"""
Snippet extractor: parses fenced code blocks out of Markdown documents.

Recognised fences follow the CommonMark rules that matter for
documentation examples:

- a run of at least three backticks or tildes, indented by at most three spaces
- the info string after the opening fence; its first word is the language tag
- a closing fence of the same character, at least as long, with no info string

A fence left open at the end of a document still produces a snippet, marked
``truncated`` so later stages can report it instead of losing it.
"""

from __future__ import annotations

import re
from typing import Iterator, List, Optional, Tuple

import structlog

from snipcheck.config.config import ExtractionSettings
from snipcheck.exceptions import SnippetParseError
from snipcheck.protocols import Document, Snippet

from .models import Fence

logger = structlog.get_logger(__name__)

BOM = "\ufeff"


def parse_tag(info: str) -> str:
    """
    Return the language tag from a fence info string.

    >>> parse_tag("python title='x.py'")
    'python'
    >>> parse_tag("{.python .numberLines}")
    'python'
    """
    info = info.strip()
    if info.startswith("{"):
        info = info[1:].split("}", 1)[0]
    words = info.split()
    if not words:
        return ""
    return words[0].lstrip(".").split(",", 1)[0]


def split_lines(text: str) -> List[str]:
    """Split on LF only, dropping the CR of CRLF endings."""
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


class SnippetExtractor:
    """Extracts Snippets from a Document in document order."""

    def __init__(self, settings: Optional[ExtractionSettings] = None) -> None:
        self.settings = settings or ExtractionSettings()
        self.logger = logger.bind(component="SnippetExtractor")

        runs = "|".join(f"{re.escape(ch)}{{{self.settings.min_fence_length},}}" for ch in self.settings.fence_chars)
        indent = f" {{0,{self.settings.max_indent}}}"
        self._open_re = re.compile(rf"^({indent})({runs})(.*)$")
        self._close_re = re.compile(rf"^{indent}({runs})[ \t]*$")

    def extract(self, document: Document) -> List[Snippet]:
        """Return every snippet of ``document``, keeping an unterminated fence as a truncated snippet."""
        snippets: List[Snippet] = []
        try:
            for snippet in self.iter_snippets(document):
                snippets.append(snippet)
        except SnippetParseError as e:
            self.logger.warning("Unterminated code fence", path=e.path, line=e.line, error=e.message)
            if e.snippet is not None:
                snippets.append(e.snippet)

        self.logger.debug("Snippets extracted", path=str(document.path), count=len(snippets))
        return snippets

    def iter_snippets(self, document: Document) -> Iterator[Snippet]:
        """
        Yield the snippets of ``document`` in document order.

        Raises SnippetParseError when the document ends inside a fence; the
        error carries what was read of that block as a truncated snippet.
        """
        text = document.text
        if text.startswith(BOM):
            text = text[len(BOM) :]

        fence: Optional[Fence] = None
        body: List[str] = []
        index = 0

        for line_number, line in enumerate(split_lines(text), start=1):
            if fence is None:
                fence = self._match_open(line, line_number)
                body = []
                continue

            closing = self._match_close(line)
            if closing is not None and fence.closes(*closing):
                yield self._build(document, fence, body, index)
                index += 1
                fence = None
                continue

            body.append(self._dedent(line, fence.indent))

        if fence is not None:
            raise SnippetParseError(
                str(document.path),
                fence.line_number,
                "unterminated code fence",
                snippet=self._build(document, fence, body, index, truncated=True),
            )

    def _match_open(self, line: str, line_number: int) -> Optional[Fence]:
        match = self._open_re.match(line)
        if not match:
            return None
        indent, run, info = match.groups()
        # A backtick fence may not carry backticks in its info string,
        # otherwise inline code such as ```foo``` would open a block.
        if run[0] == "`" and "`" in info:
            return None
        return Fence(line_number=line_number, char=run[0], length=len(run), indent=len(indent), info=info.strip())

    def _match_close(self, line: str) -> Optional[Tuple[str, int]]:
        match = self._close_re.match(line)
        if not match:
            return None
        run = match.group(1)
        return run[0], len(run)

    @staticmethod
    def _dedent(line: str, indent: int) -> str:
        if not indent:
            return line
        stripped = len(line) - len(line.lstrip(" "))
        return line[min(indent, stripped) :]

    @staticmethod
    def _build(document: Document, fence: Fence, body: List[str], index: int, truncated: bool = False) -> Snippet:
        code = "\n".join(body)
        if body:
            code += "\n"
        return Snippet(
            path=document.path,
            start_line=fence.line_number,
            tag=parse_tag(fence.info),
            code=code,
            info=fence.info,
            index=index,
            truncated=truncated,
        )
