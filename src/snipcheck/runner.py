"""
Validation runner: checks executable snippets with a pool of workers.

Guarantees one ValidationResult per input snippet. Nothing a checker does
(failing, hanging, crashing) escapes as an exception:

- reported failure            -> FAIL with the checker's diagnostic
- exceeded ``timeout``        -> FAIL "timeout"
- crashed (after retries)     -> FAIL "checker crashed: ..."
- run cancelled / run timeout -> SKIPPED "cancelled" for work not completed
- truncated fence             -> SKIPPED without calling the checker
"""

from __future__ import annotations

import asyncio
import threading
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

import structlog
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_fixed

from snipcheck.checkers import CheckerRegistry
from snipcheck.classifier import LanguageTag
from snipcheck.config.config import RunnerSettings
from snipcheck.exceptions import CheckerFailure, CheckerTimeoutError
from snipcheck.observability import observe
from snipcheck.protocols import (
    DIAGNOSTIC_TIMEOUT,
    SKIP_CANCELLED,
    SKIP_TRUNCATED,
    CancellationToken,
    Checker,
    CheckOutcome,
    Snippet,
    ValidationResult,
)

logger = structlog.get_logger(__name__)

WorkItem = Tuple[int, Snippet]


class ValidationRunner:
    """Runs the registered checker for each snippet under time limits."""

    def __init__(self, registry: CheckerRegistry, settings: RunnerSettings) -> None:
        self.registry = registry
        self.settings = settings
        self.logger = logger.bind(component="ValidationRunner")
        self.check_timings: Dict[str, List[float]] = {}

    async def run(
        self,
        snippets: Sequence[Snippet],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[ValidationResult]:
        """
        Validate ``snippets`` and return their results.

        Results come back in completion order; callers that need a stable
        order sort them. Setting ``cancel_event`` (or reaching
        ``run_timeout``) stops the run: snippets not yet checked are SKIPPED
        with diagnostic "cancelled".
        """
        if not snippets:
            return []

        stop = cancel_event if cancel_event is not None else asyncio.Event()
        loop = asyncio.get_running_loop()
        timer = loop.call_later(self.settings.run_timeout, stop.set) if self.settings.run_timeout else None

        num_workers = min(self.settings.max_concurrency, len(snippets))
        queue: asyncio.Queue[Optional[WorkItem]] = asyncio.Queue(maxsize=num_workers * 2)

        self.logger.info("Validation started", snippets=len(snippets), workers=num_workers)
        collected: Dict[int, ValidationResult] = {}
        try:
            async with asyncio.TaskGroup() as tg:
                tg.create_task(self._producer(queue, snippets, num_workers))
                workers = [
                    tg.create_task(self._worker(f"worker-{i}", queue, stop)) for i in range(num_workers)
                ]
            for worker in workers:
                collected.update(worker.result())
        except* Exception as eg:
            for e in eg.exceptions:
                self.logger.error("Validation worker failed", error=str(e), error_type=type(e).__name__)
        finally:
            if timer is not None:
                timer.cancel()

        results = [collected.get(i) or ValidationResult.skipped(s, SKIP_CANCELLED) for i, s in enumerate(snippets)]
        self.logger.info(
            "Validation finished",
            snippets=len(results),
            cancelled=stop.is_set(),
        )
        return results

    async def _producer(self, queue: asyncio.Queue[Optional[WorkItem]], snippets: Sequence[Snippet], workers: int) -> None:
        for item in enumerate(snippets):
            await queue.put(item)
        # Signal end of input to workers
        for _ in range(workers):
            await queue.put(None)

    async def _worker(
        self,
        worker_id: str,
        queue: asyncio.Queue[Optional[WorkItem]],
        stop: asyncio.Event,
    ) -> Dict[int, ValidationResult]:
        """Drain the queue and return this worker's results."""
        results: Dict[int, ValidationResult] = {}
        while True:
            item = await queue.get()
            if item is None:
                break

            position, snippet = item
            if stop.is_set():
                results[position] = ValidationResult.skipped(snippet, SKIP_CANCELLED)
                continue

            try:
                results[position] = await self.validate(snippet, stop)
            except Exception as e:
                # validate() handles checker errors itself; this only guards the runner's own bugs
                self.logger.error("Unexpected validation error", location=snippet.location, error=str(e))
                results[position] = ValidationResult.failed(snippet, f"internal error: {type(e).__name__}: {e}")

            self.logger.debug(
                "Snippet validated",
                worker_id=worker_id,
                location=snippet.location,
                outcome=results[position].outcome.value,
            )
        return results

    async def validate(
        self,
        snippet: Snippet,
        stop: Optional[asyncio.Event] = None,
    ) -> ValidationResult:
        """Validate a single snippet."""
        if snippet.truncated:
            self.logger.info("Skipping truncated snippet", location=snippet.location)
            return ValidationResult.skipped(snippet, SKIP_TRUNCATED)

        checker = self.registry.get(snippet.tag)
        if checker is None:
            return ValidationResult.failed(snippet, f"no checker registered for tag '{snippet.tag}'")

        stop = stop or asyncio.Event()
        token = CancellationToken()
        started = time.perf_counter()

        check = self._start_check(checker, snippet, token)
        stop_waiter = asyncio.ensure_future(stop.wait())
        try:
            done, _ = await asyncio.wait(
                {check, stop_waiter},
                timeout=self.settings.timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            stop_waiter.cancel()

        duration = time.perf_counter() - started
        self._record_timing(snippet.tag, duration)

        if check not in done:
            reason = SKIP_CANCELLED if stop.is_set() else DIAGNOSTIC_TIMEOUT
            token.cancel(reason)
            # Abandon the thread; a checker that ignores the token finishes on its own
            check.cancel()
            if reason == DIAGNOSTIC_TIMEOUT:
                self.logger.warning("Checker timed out", location=snippet.location, timeout=self.settings.timeout)
                return ValidationResult.failed(snippet, DIAGNOSTIC_TIMEOUT, duration)
            self.logger.info("Check cancelled", location=snippet.location)
            return ValidationResult.skipped(snippet, SKIP_CANCELLED)

        return self._to_result(snippet, check, duration)

    def _start_check(self, checker: Checker, snippet: Snippet, token: CancellationToken) -> "asyncio.Future[Any]":
        """
        Run the checker on its own daemon thread and return a future for its outcome.

        Each check gets a fresh thread, so the timeout covers only this
        snippet's checker and a checker that outlives its timeout never
        delays the next snippet or keeps the process alive at exit.
        """
        loop = asyncio.get_running_loop()
        future: "asyncio.Future[Any]" = loop.create_future()

        def settle(outcome: Any, error: Optional[BaseException]) -> None:
            if future.done():
                return
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(outcome)

        def target() -> None:
            try:
                outcome, error = self._invoke(checker, snippet, token), None
            except Exception as e:
                outcome, error = None, e
            try:
                loop.call_soon_threadsafe(settle, outcome, error)
            except RuntimeError:
                # Event loop already closed: the run has finished without this result
                self.logger.debug("Discarding late checker result", location=snippet.location)

        threading.Thread(target=target, name=f"snipcheck-check-{snippet.location}", daemon=True).start()
        return future

    def _invoke(self, checker: Checker, snippet: Snippet, token: CancellationToken) -> CheckOutcome:
        """Runs in a worker thread; retries crashes, not reported failures."""

        def is_crash(error: BaseException) -> bool:
            return not isinstance(error, (CheckerFailure, CheckerTimeoutError)) and not token.cancelled

        retrying = Retrying(
            stop=stop_after_attempt(self.settings.crash_retries + 1),
            wait=wait_fixed(self.settings.retry_wait),
            retry=retry_if_exception(is_crash),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    self.logger.info(
                        "Retrying crashed checker",
                        checker=checker.name,
                        location=snippet.location,
                        attempt=attempt.retry_state.attempt_number,
                    )
                return checker.check(snippet.code, token)
        raise AssertionError("unreachable")  # pragma: no cover

    def _to_result(self, snippet: Snippet, check: "asyncio.Future[Any]", duration: float) -> ValidationResult:
        error = check.exception()
        if isinstance(error, CheckerFailure):
            return ValidationResult.failed(snippet, error.diagnostic, duration)
        if error is not None:
            self.logger.error(
                "Checker crashed",
                location=snippet.location,
                error=str(error),
                error_type=type(error).__name__,
            )
            return ValidationResult.failed(snippet, f"checker crashed: {type(error).__name__}: {error}", duration)

        outcome = check.result()
        if not isinstance(outcome, CheckOutcome):
            return ValidationResult.failed(
                snippet, f"checker crashed: returned {type(outcome).__name__}, expected CheckOutcome", duration
            )
        if outcome.success:
            return ValidationResult.passed(snippet, duration)
        return ValidationResult.failed(snippet, outcome.diagnostic or "checker reported failure", duration)

    def _record_timing(self, tag: str, duration: float) -> None:
        self.check_timings.setdefault(tag, []).append(duration)
        observe("check_duration_seconds", duration, labels={"tag": LanguageTag.metric_label(tag)})

    def get_performance_stats(self) -> Dict[str, Any]:
        """Get checker timing statistics per tag."""
        stats: Dict[str, Any] = {}
        for tag, timings in self.check_timings.items():
            if timings:
                stats[tag] = {
                    "count": len(timings),
                    "avg_duration": sum(timings) / len(timings),
                    "min_duration": min(timings),
                    "max_duration": max(timings),
                    "total_duration": sum(timings),
                }
        return stats
