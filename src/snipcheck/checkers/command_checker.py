"""
External command checker.

Runs a compiler, linter or interpreter on each snippet. A non-zero exit is a
reported failure; death by signal is a crash. The process is polled so that a
cancelled token (timeout or shutdown) kills it promptly.
"""

from __future__ import annotations

import os
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional

import structlog

from snipcheck.config.config import CommandCheckerSettings
from snipcheck.exceptions import CheckerCrashError, CheckerTimeoutError
from snipcheck.protocols import CancellationToken, CheckOutcome

logger = structlog.get_logger(__name__)

FILE_PLACEHOLDER = "{file}"


class CommandChecker:
    """Validates snippets by running an external program."""

    def __init__(self, name: str, settings: CommandCheckerSettings, poll_interval: float = 0.05) -> None:
        self.name = name
        self.settings = settings
        self.poll_interval = poll_interval
        self.logger = logger.bind(component="CommandChecker", checker=name)

    def build_argv(self, path: Optional[Path]) -> List[str]:
        if path is None:
            return list(self.settings.command)
        if any(FILE_PLACEHOLDER in arg for arg in self.settings.command):
            return [arg.replace(FILE_PLACEHOLDER, str(path)) for arg in self.settings.command]
        return [*self.settings.command, str(path)]

    def check(self, code: str, token: CancellationToken) -> CheckOutcome:
        path: Optional[Path] = None
        if not self.settings.stdin:
            fd, name = tempfile.mkstemp(prefix="snipcheck-", suffix=self.settings.suffix)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(code)
            path = Path(name)

        try:
            return self._run(self.build_argv(path), code if self.settings.stdin else None, token)
        finally:
            if path is not None:
                path.unlink(missing_ok=True)

    def _run(self, argv: List[str], stdin_data: Optional[str], token: CancellationToken) -> CheckOutcome:
        env = {**os.environ, **self.settings.env} if self.settings.env else None
        try:
            proc = subprocess.Popen(
                argv,
                stdin=subprocess.PIPE if stdin_data is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                env=env,
            )
        except OSError as e:
            raise CheckerCrashError(f"cannot start {argv[0]!r}: {e}") from e

        pending_input = stdin_data
        while True:
            try:
                stdout, stderr = proc.communicate(input=pending_input, timeout=self.poll_interval)
                break
            except subprocess.TimeoutExpired:
                pending_input = None
                if token.cancelled:
                    proc.kill()
                    proc.communicate()
                    self.logger.debug("Checker process killed", reason=token.reason, pid=proc.pid)
                    raise CheckerTimeoutError(token.reason or "cancelled")

        if proc.returncode < 0:
            raise CheckerCrashError(f"{argv[0]} terminated by signal {-proc.returncode}")
        if proc.returncode == 0:
            return CheckOutcome.ok()

        diagnostic = (stderr or "").strip() or (stdout or "").strip() or f"exit status {proc.returncode}"
        return CheckOutcome.error(diagnostic)
