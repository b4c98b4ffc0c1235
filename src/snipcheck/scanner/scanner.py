"""
Document scanner: walks a documentation tree and yields Documents lazily.
"""

from __future__ import annotations

import fnmatch
import os
from pathlib import Path
from typing import Iterator, List

import structlog

from snipcheck.config.config import ScannerSettings
from snipcheck.observability import increment
from snipcheck.protocols import Document, ScanWarning

logger = structlog.get_logger(__name__)


class DocumentScanner:
    """
    Produces the Documents under a root path.

    ``scan`` is a generator: nothing is read until it is iterated, and every
    call walks and reads the tree again. Unreadable files are skipped and
    recorded in ``warnings`` for the current scan, as are directories the
    walk cannot list.
    """

    def __init__(self, settings: ScannerSettings) -> None:
        self.settings = settings
        self.warnings: List[ScanWarning] = []
        self.logger = logger.bind(component="DocumentScanner")

    def scan(self, root: Path) -> Iterator[Document]:
        self.warnings = []
        for path in self.iter_paths(root):
            try:
                text = path.read_text(encoding=self.settings.encoding)
            except (OSError, UnicodeDecodeError) as e:
                self._warn(path, e, "Skipping unreadable document")
                continue

            increment("documents_scanned")
            self.logger.debug("Document read", path=str(path), size=len(text))
            yield Document(path=path, text=text)

    def iter_paths(self, root: Path) -> Iterator[Path]:
        """Yield matching file paths under ``root`` in sorted order."""
        if root.is_file():
            yield root
            return

        def on_walk_error(error: OSError) -> None:
            self._warn(Path(error.filename) if error.filename else root, error, "Skipping unreadable directory")

        walk = os.walk(root, onerror=on_walk_error, followlinks=self.settings.follow_symlinks)
        for dirpath, dirnames, filenames in walk:
            # Prune in place so os.walk does not descend into excluded dirs
            dirnames[:] = sorted(d for d in dirnames if not self._is_excluded(d))
            for name in sorted(filenames):
                if self._is_excluded(name) or not self._is_included(name):
                    continue
                yield Path(dirpath) / name

    def _warn(self, path: Path, error: Exception, event: str) -> None:
        message = f"{type(error).__name__}: {error}"
        self.warnings.append(ScanWarning(path=path, message=message))
        increment("scan_warnings")
        self.logger.warning(event, path=str(path), error=message)

    def _is_included(self, name: str) -> bool:
        return any(fnmatch.fnmatch(name, pattern) for pattern in self.settings.include)

    def _is_excluded(self, name: str) -> bool:
        return any(fnmatch.fnmatch(name, pattern) for pattern in self.settings.exclude)
