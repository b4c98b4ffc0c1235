"""
Test configuration for snipcheck.

Provides documentation trees, configurations and fake checkers shared by the
unit and integration tests.
"""

# Standard library imports
import asyncio
import logging
import threading
import time
from pathlib import Path
from typing import AsyncGenerator, Callable, Dict, List

import pytest
import pytest_asyncio
import structlog

# Local imports
from snipcheck.checkers import CheckerRegistry
from snipcheck.config import Config, RunnerSettings
from snipcheck.exceptions import CheckerFailure
from snipcheck.protocols import CancellationToken, CheckOutcome, Snippet
from structlog.contextvars import clear_contextvars

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests across modules")
    config.addinivalue_line("markers", "slow: Tests that take more than a few seconds")


@pytest_asyncio.fixture(autouse=True)
async def cleanup_tasks() -> AsyncGenerator[None, None]:
    """Cancel any asyncio task a test leaves behind."""
    tasks_before = asyncio.all_tasks()
    yield
    new_tasks = asyncio.all_tasks() - tasks_before

    for task in new_tasks:
        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass


# ============================================================================
# Documentation Tree Fixtures
# ============================================================================


@pytest.fixture
def write_doc(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write a document below ``tmp_path`` and return its path."""

    def _write(relative: str, text: str) -> Path:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def docs_tree(tmp_path: Path, write_doc) -> Path:
    """A small tree with one passing, one failing and one prose snippet."""
    write_doc(
        "guide.md",
        "# Guide\n\n```python\nprint('hello')\n```\n\nSome prose.\n\n```text\nnot code\n```\n",
    )
    write_doc(
        "api/reference.md",
        "# API\n\n```python\ndef broken(:\n    pass\n```\n",
    )
    write_doc("notes.txt", "```python\nthis is ignored\n```\n")
    return tmp_path


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def test_config() -> Config:
    """Configuration with test-friendly limits."""
    return Config.load(
        {
            "runner": {"timeout": 2.0, "max_concurrency": 2, "crash_retries": 1, "retry_wait": 0.0},
            "checkers": {"poll_interval": 0.01},
        }
    )


@pytest.fixture
def runner_settings() -> RunnerSettings:
    return RunnerSettings(timeout=1.0, max_concurrency=2, crash_retries=1, retry_wait=0.0)


# ============================================================================
# Snippet and Checker Fixtures
# ============================================================================


def make_snippet(
    code: str = "x = 1\n",
    tag: str = "python",
    path: str = "docs/example.md",
    start_line: int = 1,
    index: int = 0,
    truncated: bool = False,
) -> Snippet:
    """Build a Snippet without going through the extractor."""
    return Snippet(
        path=Path(path),
        start_line=start_line,
        tag=tag,
        code=code,
        info=tag,
        index=index,
        truncated=truncated,
    )


@pytest.fixture
def snippet_factory() -> Callable[..., Snippet]:
    return make_snippet


class ScriptedChecker:
    """
    Checker whose behaviour is chosen by the snippet code.

    ``pass``  -> success
    ``fail``  -> reported failure (returned)
    ``raise`` -> reported failure (raised CheckerFailure)
    ``crash`` -> RuntimeError on every call
    ``flaky`` -> RuntimeError on the first call only
    ``hang``  -> blocks until the token is cancelled
    ``stuck`` -> sleeps two seconds, ignoring the token
    """

    name = "scripted"

    def __init__(self) -> None:
        self.calls: Dict[str, int] = {}
        self.cancelled: List[str] = []
        self._lock = threading.Lock()

    def check(self, code: str, token: CancellationToken) -> CheckOutcome:
        command = code.strip()
        with self._lock:
            self.calls[command] = self.calls.get(command, 0) + 1
            attempt = self.calls[command]

        if command == "fail":
            return CheckOutcome.error("scripted failure")
        if command == "raise":
            raise CheckerFailure("raised failure")
        if command == "crash":
            raise RuntimeError("checker exploded")
        if command == "flaky" and attempt == 1:
            raise RuntimeError("transient")
        if command == "stuck":
            time.sleep(2)
            return CheckOutcome.ok()
        if command == "hang":
            token.wait(30)
            with self._lock:
                self.cancelled.append(token.reason or "")
            return CheckOutcome.ok()
        return CheckOutcome.ok()


@pytest.fixture
def scripted_checker() -> ScriptedChecker:
    return ScriptedChecker()


@pytest.fixture
def scripted_registry(scripted_checker: ScriptedChecker) -> CheckerRegistry:
    registry = CheckerRegistry()
    registry.register("python", scripted_checker)
    return registry


# ============================================================================
# Logging Fixtures
# ============================================================================


@pytest.fixture
def restore_logging():
    """Undo configure_logging: root handlers, level, contextvars and structlog."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    clear_contextvars()
    structlog.reset_defaults()
