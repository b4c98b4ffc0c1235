"""
Dependency injection container wiring the pipeline stages from configuration.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable, Dict, Generic, Optional, TypeVar
from uuid import uuid4

import structlog

from snipcheck.config import Config

if TYPE_CHECKING:
    from snipcheck.checkers import CheckerRegistry
    from snipcheck.classifier import SnippetClassifier
    from snipcheck.extractor import SnippetExtractor
    from snipcheck.runner import ValidationRunner
    from snipcheck.scanner import DocumentScanner

T = TypeVar("T")


class LazyInstance(Generic[T]):
    """Lazy-loaded instance with lifecycle management."""

    def __init__(self, factory: Callable[..., T], *args: Any, **kwargs: Any) -> None:
        self._factory = factory
        self._args = args
        self._kwargs = kwargs
        self._instance: Optional[T] = None
        self._initialized = False

    async def get(self) -> T:
        """Get or create the instance."""
        if not self._initialized:
            self._instance = self._factory(*self._args, **self._kwargs)
            self._initialized = True
        assert self._instance is not None
        return self._instance

    async def cleanup(self) -> None:
        """Clean up the instance."""
        close = getattr(self._instance, "close", None)
        if callable(close):
            result = close()
            if asyncio.iscoroutine(result):
                await result
        self._instance = None
        self._initialized = False


class DependencyContainer:
    """
    Builds the scanner, extractor, classifier, checker registry and runner.

    Instances are created on first use and share one Config. Pass ``config``
    to use an already-loaded configuration instead of reading ``config_path``.
    """

    def __init__(self, config_path: Optional[Path] = None, config: Optional[Config] = None) -> None:
        self.config_path = config_path
        self.config: Optional[Config] = config
        self.logger = structlog.get_logger(self.__class__.__name__)

        self._instances: Dict[str, LazyInstance[Any]] = {}
        self._instances_lock = asyncio.Lock()

        self.run_id = str(uuid4())
        self.is_running = False

    async def initialize(self) -> None:
        """Load configuration (unless provided) and create lazy instances."""
        if self.config is None:
            self.load_config()
        self._create_instances()
        self.is_running = True

        self.logger.debug(
            "Dependency container initialized",
            run_id=self.run_id,
            config_path=str(self.config_path) if self.config_path else "default",
        )

    def load_config(self) -> Config:
        if self.config_path:
            self.config = Config.from_yaml(self.config_path)
        else:
            self.config = Config()
        return self.config

    def _create_instances(self) -> None:
        if self.config is None:
            raise RuntimeError("Configuration must be loaded before creating instances")

        from snipcheck.checkers import CheckerRegistry
        from snipcheck.classifier import SnippetClassifier
        from snipcheck.extractor import SnippetExtractor
        from snipcheck.scanner import DocumentScanner

        classifier = SnippetClassifier(self.config.classifier)
        self._instances = {
            "scanner": LazyInstance(DocumentScanner, self.config.scanner),
            "extractor": LazyInstance(SnippetExtractor, self.config.extraction),
            "classifier": LazyInstance(lambda: classifier),
            "checkers": LazyInstance(CheckerRegistry.from_settings, self.config.checkers, classifier.canonical_tag),
            "runner": LazyInstance(self._build_runner),
        }

    def _build_runner(self) -> ValidationRunner:
        from snipcheck.runner import ValidationRunner

        assert self.config is not None
        registry = self._instances["checkers"]._instance
        if registry is None:
            raise RuntimeError("Checker registry must be created before the runner")
        return ValidationRunner(registry, self.config.runner)

    async def get_scanner(self) -> DocumentScanner:
        async with self._instances_lock:
            return await self._instances["scanner"].get()  # type: ignore

    async def get_extractor(self) -> SnippetExtractor:
        async with self._instances_lock:
            return await self._instances["extractor"].get()  # type: ignore

    async def get_classifier(self) -> SnippetClassifier:
        async with self._instances_lock:
            return await self._instances["classifier"].get()  # type: ignore

    async def get_checkers(self) -> CheckerRegistry:
        async with self._instances_lock:
            return await self._instances["checkers"].get()  # type: ignore

    async def get_runner(self) -> ValidationRunner:
        await self.get_checkers()
        async with self._instances_lock:
            return await self._instances["runner"].get()  # type: ignore

    @asynccontextmanager
    async def lifecycle(self) -> AsyncIterator[DependencyContainer]:
        """Context manager for proper lifecycle management."""
        try:
            await self.initialize()
            yield self
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        if not self.is_running:
            return
        for name, instance in self._instances.items():
            try:
                await instance.cleanup()
            except Exception as e:
                self.logger.error(f"Error cleaning up {name}", error=str(e))
        self.is_running = False
        self.logger.debug("Dependency container shutdown complete", run_id=self.run_id)
