"""
Pipeline orchestration for snipcheck.

Scanner -> Extractor -> Classifier -> Validation Runner -> Aggregator, one
pass per run. Nothing is kept between runs: documents, snippets and results
are consumed left to right and only the Report survives.
"""

from __future__ import annotations

import asyncio
import signal
import time
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
from structlog.contextvars import bind_contextvars, unbind_contextvars

from snipcheck.container import DependencyContainer
from snipcheck.exceptions import ConfigurationError
from snipcheck.observability import increment
from snipcheck.protocols import SKIP_NON_EXECUTABLE, Snippet, ValidationResult
from snipcheck.report import Report, aggregate


class PipelineStage(Enum):
    """Pipeline processing stages."""

    SCAN = "scan"
    EXTRACT = "extract"
    CLASSIFY = "classify"
    VALIDATE = "validate"
    AGGREGATE = "aggregate"


class Pipeline:
    """Runs one validation pass over a documentation tree."""

    def __init__(self, container: DependencyContainer) -> None:
        self.container = container
        self.logger = structlog.get_logger(self.__class__.__name__)

        self.stage_timings: Dict[str, List[float]] = {}
        self.is_running = False

        # Signal handling for graceful shutdown
        self._cancel_event: Optional[asyncio.Event] = None
        self._original_sigint_handler: Any = None
        self._original_sigterm_handler: Any = None

    async def run(self, root: Path, install_signal_handlers: bool = True) -> Report:
        """Validate every snippet under ``root`` and return the Report."""
        if not root.exists():
            raise ConfigurationError(f"Root path does not exist: {root}")

        self._cancel_event = asyncio.Event()
        if install_signal_handlers:
            self._setup_signal_handlers()

        self.is_running = True
        try:
            async with self.container.lifecycle():
                bind_contextvars(run_id=self.container.run_id)
                return await self._process(root)
        finally:
            unbind_contextvars("run_id")
            self.is_running = False
            if install_signal_handlers:
                self._cleanup_signal_handlers()

    def run_sync(self, root: Path) -> Report:
        """Blocking convenience wrapper around ``run``."""
        return asyncio.run(self.run(root))

    def cancel(self) -> None:
        """Stop the run; snippets not yet checked are reported as cancelled."""
        if self._cancel_event is not None and not self._cancel_event.is_set():
            self.logger.info("Cancellation requested")
            self._cancel_event.set()

    async def _process(self, root: Path) -> Report:
        assert self._cancel_event is not None
        scanner = await self.container.get_scanner()
        extractor = await self.container.get_extractor()
        classifier = await self.container.get_classifier()
        runner = await self.container.get_runner()

        self.logger.info("Pipeline started", root=str(root), executable_tags=sorted(classifier.executable_tags))

        # STAGE 1+2: SCAN and EXTRACT; documents are released once extracted
        stage_start = time.time()
        snippets: List[Snippet] = []
        documents = 0
        for document in scanner.scan(root):
            documents += 1
            extract_start = time.time()
            snippets.extend(extractor.extract(document))
            self._record_stage_timing(PipelineStage.EXTRACT.value, time.time() - extract_start)
        self._record_stage_timing(PipelineStage.SCAN.value, time.time() - stage_start)
        warnings = list(scanner.warnings)

        # STAGE 3: CLASSIFY
        stage_start = time.time()
        executable: List[Snippet] = []
        results: List[ValidationResult] = []
        for snippet in snippets:
            # Truncated blocks are reported as truncated whatever their tag
            if snippet.truncated or classifier.is_executable(snippet):
                executable.append(snippet)
            else:
                results.append(ValidationResult.skipped(snippet, SKIP_NON_EXECUTABLE))
        self._record_stage_timing(PipelineStage.CLASSIFY.value, time.time() - stage_start)

        self.logger.info(
            "Snippets classified",
            documents=documents,
            snippets=len(snippets),
            executable=len(executable),
            scan_warnings=len(warnings),
        )

        # STAGE 4: VALIDATE
        stage_start = time.time()
        results.extend(await runner.run(executable, cancel_event=self._cancel_event))
        self._record_stage_timing(PipelineStage.VALIDATE.value, time.time() - stage_start)

        # STAGE 5: AGGREGATE
        stage_start = time.time()
        report = aggregate(results, warnings, root=root if root.is_dir() else root.parent)
        self._record_stage_timing(PipelineStage.AGGREGATE.value, time.time() - stage_start)

        for result in results:
            increment("snippets", labels={"outcome": result.outcome.value})

        self.logger.info(
            "Pipeline finished",
            total=report.total,
            passed=report.passed,
            failed=report.failed,
            skipped=report.skipped,
            cancelled=self._cancel_event.is_set(),
        )
        return report

    def _setup_signal_handlers(self) -> None:
        """Route SIGINT/SIGTERM to a graceful cancel of the current run."""

        def signal_handler(signum: int, frame: Any) -> None:
            self.logger.warning(f"Received signal {signum}, cancelling remaining snippets")
            if self._cancel_event is None:
                return
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                self._cancel_event.set()
                return
            loop.call_soon_threadsafe(self._cancel_event.set)

        self._original_sigint_handler = signal.signal(signal.SIGINT, signal_handler)
        self._original_sigterm_handler = signal.signal(signal.SIGTERM, signal_handler)

    def _cleanup_signal_handlers(self) -> None:
        """Restore original signal handlers."""
        if self._original_sigint_handler is not None:
            signal.signal(signal.SIGINT, self._original_sigint_handler)
        if self._original_sigterm_handler is not None:
            signal.signal(signal.SIGTERM, self._original_sigterm_handler)
        self._original_sigint_handler = None
        self._original_sigterm_handler = None

    def _record_stage_timing(self, stage: str, duration: float) -> None:
        """Record timing for a pipeline stage."""
        if stage not in self.stage_timings:
            self.stage_timings[stage] = []
        self.stage_timings[stage].append(duration)

    def get_performance_stats(self) -> Dict[str, Any]:
        """Get performance statistics for all stages."""
        stats: Dict[str, Any] = {}
        for stage, timings in self.stage_timings.items():
            if timings:
                stats[stage] = {
                    "count": len(timings),
                    "avg_duration": sum(timings) / len(timings),
                    "min_duration": min(timings),
                    "max_duration": max(timings),
                    "total_duration": sum(timings),
                }
        return stats
