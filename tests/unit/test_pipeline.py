"""Unit tests for pipeline orchestration."""

import asyncio
import signal
import sys
from pathlib import Path

import pytest
from snipcheck.config import Config
from snipcheck.container import DependencyContainer
from snipcheck.exceptions import ConfigurationError
from snipcheck.pipeline import Pipeline, PipelineStage
from snipcheck.protocols import SKIP_CANCELLED, SKIP_NON_EXECUTABLE, SKIP_TRUNCATED


def make_pipeline(config: Config) -> Pipeline:
    return Pipeline(DependencyContainer(config=config))


class TestPipelineRun:
    @pytest.mark.asyncio
    async def test_end_to_end(self, docs_tree: Path, test_config):
        pipeline = make_pipeline(test_config)
        report = await pipeline.run(docs_tree, install_signal_handlers=False)

        assert (report.total, report.passed, report.failed, report.skipped) == (3, 1, 1, 1)
        [failure] = report.failures
        assert report.location(failure.snippet) == "api/reference.md:3"
        assert failure.diagnostic.startswith("line 1: SyntaxError")
        [skip] = report.skips
        assert skip.diagnostic == SKIP_NON_EXECUTABLE
        assert report.exit_code == 1

    @pytest.mark.asyncio
    async def test_records_stage_timings(self, docs_tree: Path, test_config):
        pipeline = make_pipeline(test_config)
        await pipeline.run(docs_tree, install_signal_handlers=False)
        stats = pipeline.get_performance_stats()
        for stage in (PipelineStage.SCAN, PipelineStage.CLASSIFY, PipelineStage.VALIDATE, PipelineStage.AGGREGATE):
            assert stats[stage.value]["count"] == 1
        assert stats[PipelineStage.EXTRACT.value]["count"] == 2

    @pytest.mark.asyncio
    async def test_missing_root(self, tmp_path: Path, test_config):
        with pytest.raises(ConfigurationError):
            await make_pipeline(test_config).run(tmp_path / "missing", install_signal_handlers=False)

    @pytest.mark.asyncio
    async def test_empty_tree(self, tmp_path: Path, test_config):
        report = await make_pipeline(test_config).run(tmp_path, install_signal_handlers=False)
        assert report.total == 0
        assert report.exit_code == 0

    @pytest.mark.asyncio
    async def test_truncated_fence_reported(self, tmp_path: Path, write_doc, test_config):
        write_doc("doc.md", "intro\n\n```text\nnever closed\n")
        report = await make_pipeline(test_config).run(tmp_path, install_signal_handlers=False)
        [skip] = report.skips
        assert skip.diagnostic == SKIP_TRUNCATED
        assert report.location(skip.snippet) == "doc.md:3"

    @pytest.mark.asyncio
    async def test_single_file_root(self, write_doc, test_config):
        path = write_doc("one.md", "```python\nx = 1\n```\n")
        report = await make_pipeline(test_config).run(path, install_signal_handlers=False)
        assert report.passed == 1

    @pytest.mark.asyncio
    async def test_warnings_are_reported(self, tmp_path: Path, write_doc, test_config):
        write_doc("ok.md", "```python\nx = 1\n```\n")
        (tmp_path / "bad.md").write_bytes(b"\xff\xfe\xfd")
        report = await make_pipeline(test_config).run(tmp_path, install_signal_handlers=False)
        assert report.passed == 1
        assert [w.path.name for w in report.warnings] == ["bad.md"]
        assert report.exit_code == 0


class TestPipelineCancellation:
    @pytest.mark.asyncio
    async def test_cancel_marks_remaining_snippets(self, docs_tree: Path):
        config = Config.load(
            {
                "runner": {"timeout": 30.0, "max_concurrency": 2},
                "checkers": {
                    "poll_interval": 0.01,
                    "commands": {"python": {"command": [sys.executable, "-c", "import time; time.sleep(30)"]}},
                },
            }
        )
        pipeline = make_pipeline(config)

        task = asyncio.create_task(pipeline.run(docs_tree, install_signal_handlers=False))
        await asyncio.sleep(0.5)
        pipeline.cancel()
        report = await asyncio.wait_for(task, timeout=10)

        assert (report.total, report.passed, report.failed, report.skipped) == (3, 0, 0, 3)
        assert sorted(r.diagnostic for r in report.skips) == [SKIP_CANCELLED, SKIP_CANCELLED, SKIP_NON_EXECUTABLE]

    @pytest.mark.asyncio
    async def test_signal_handlers_restored(self, docs_tree: Path, test_config):
        original_int = signal.getsignal(signal.SIGINT)
        original_term = signal.getsignal(signal.SIGTERM)

        await make_pipeline(test_config).run(docs_tree)

        assert signal.getsignal(signal.SIGINT) is original_int
        assert signal.getsignal(signal.SIGTERM) is original_term

    def test_cancel_without_run_is_noop(self, test_config):
        make_pipeline(test_config).cancel()

    def test_run_sync(self, docs_tree: Path, test_config):
        report = make_pipeline(test_config).run_sync(docs_tree)
        assert report.total == 3
