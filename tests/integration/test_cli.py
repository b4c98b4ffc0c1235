"""
End-to-end tests of the ``validate-docs`` command.

Each test builds a documentation tree on disk and drives the click command
through CliRunner, asserting on stdout and the exit status.
"""

import json
import sys
from pathlib import Path

import pytest
from click.testing import CliRunner
from snipcheck import __version__
from snipcheck.cli import EXIT_FAILED, EXIT_OK, EXIT_USAGE, cli

pytestmark = [pytest.mark.integration, pytest.mark.usefixtures("restore_logging")]


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def invoke(runner: CliRunner, *args: str):
    return runner.invoke(cli, [str(a) for a in args], catch_exceptions=False)


class TestExitCodes:
    def test_all_snippets_pass(self, runner, tmp_path: Path, write_doc):
        write_doc("index.md", "# Intro\n\n```python\nprint('hello')\n```\n")

        result = invoke(runner, tmp_path)

        assert result.exit_code == EXIT_OK
        assert result.stdout == "total=1 passed=1 failed=0 skipped=0\n"

    def test_failing_snippet_reports_location(self, runner, tmp_path: Path, write_doc):
        prose = "".join(f"line {n}\n" for n in range(1, 10))
        write_doc("guide.md", prose + "```python\ndef broken(:\n    pass\n```\n")

        result = invoke(runner, tmp_path)

        assert result.exit_code == EXIT_FAILED
        lines = result.stdout.splitlines()
        assert lines[0] == "total=1 passed=0 failed=1 skipped=0"
        assert lines[1].startswith("guide.md:10: line 1: SyntaxError")

    def test_missing_root_is_usage_error(self, runner, tmp_path: Path):
        result = invoke(runner, tmp_path / "does-not-exist")

        assert result.exit_code == EXIT_USAGE
        assert result.stdout == ""
        assert "does not exist" in result.stderr

    @pytest.mark.parametrize("value", ["abc", "0", "-3"])
    def test_invalid_timeout_is_usage_error(self, runner, docs_tree: Path, value):
        result = invoke(runner, docs_tree, "--timeout", value)
        assert result.exit_code == EXIT_USAGE
        assert result.stdout == ""

    def test_invalid_config_file_is_usage_error(self, runner, docs_tree: Path, tmp_path: Path):
        config = tmp_path / "broken.yaml"
        config.write_text("runner: [\n")
        result = invoke(runner, docs_tree, "--config", config)
        assert result.exit_code == EXIT_USAGE

    def test_non_executable_only_passes(self, runner, tmp_path: Path, write_doc):
        write_doc("prose.md", "```text\nanything\n```\n\n```\nno tag\n```\n")
        result = invoke(runner, tmp_path)
        assert result.exit_code == EXIT_OK
        assert result.stdout == "total=2 passed=0 failed=0 skipped=2\n"


class TestOutput:
    def test_reruns_are_byte_identical(self, runner, tmp_path: Path, write_doc):
        for name in ["b.md", "a.md", "sub/c.md"]:
            write_doc(name, "```python\nok = 1\n```\n\n```python\nnope(\n```\n\n```bash\nls\n```\n")

        first = invoke(runner, tmp_path, "--jobs", "4")
        second = invoke(runner, tmp_path, "--jobs", "1")

        assert first.exit_code == second.exit_code == EXIT_FAILED
        assert first.stdout == second.stdout
        assert [line.split(":")[0] for line in first.stdout.splitlines()[1:]] == ["a.md", "b.md", "sub/c.md"]

    def test_json_format(self, runner, docs_tree: Path):
        result = invoke(runner, docs_tree, "--format", "json")

        assert result.exit_code == EXIT_FAILED
        data = json.loads(result.stdout)
        assert data["status"] == "fail"
        assert (data["total"], data["passed"], data["failed"], data["skipped"]) == (3, 1, 1, 1)
        assert data["failures"][0]["path"] == "api/reference.md"
        assert data["failures"][0]["line"] == 3

    def test_output_file(self, runner, docs_tree: Path, tmp_path: Path):
        target = tmp_path / "reports" / "snippets.txt"
        result = invoke(runner, docs_tree, "--output", target)
        assert target.read_text() == result.stdout

    def test_verbose_lists_skips(self, runner, docs_tree: Path):
        result = invoke(runner, docs_tree, "--verbose")
        assert "guide.md:9: skipped (non-executable)" in result.stdout

    def test_unreadable_file_is_a_warning(self, runner, tmp_path: Path, write_doc):
        write_doc("good.md", "```python\nx = 1\n```\n")
        (tmp_path / "bad.md").write_bytes(b"\xff\xfe\xfa")

        result = invoke(runner, tmp_path)

        assert result.exit_code == EXIT_OK
        lines = result.stdout.splitlines()
        assert lines[0] == "total=1 passed=1 failed=0 skipped=0"
        assert lines[1].startswith("warning: bad.md: UnicodeDecodeError")

    def test_metrics_file(self, runner, docs_tree: Path, tmp_path: Path):
        target = tmp_path / "metrics.prom"
        invoke(runner, docs_tree, "--metrics-file", target)
        assert "snipcheck_snippets_total" in target.read_text()

    def test_version(self, runner):
        result = invoke(runner, "--version")
        assert result.exit_code == 0
        assert __version__ in result.stdout


class TestTagsAndCheckers:
    def test_tag_selects_language(self, runner, docs_tree: Path):
        # "text" has no checker, so selecting it turns its snippet into a failure
        result = invoke(runner, docs_tree, "--tag", "text")

        assert result.exit_code == EXIT_FAILED
        assert "guide.md:9: no checker registered for tag 'text'" in result.stdout
        assert result.stdout.startswith("total=3 passed=0 failed=1 skipped=2\n")

    def test_alias_tags(self, runner, tmp_path: Path, write_doc):
        write_doc("alias.md", "```py\nx = 1\n```\n\n```Python3\ny = (\n```\n")
        result = invoke(runner, tmp_path)
        assert result.stdout.splitlines()[0] == "total=2 passed=1 failed=1 skipped=0"

    def test_command_checker_from_config(self, runner, tmp_path: Path, write_doc):
        write_doc("docs/run.md", "```python\nraise SystemExit('bad example')\n```\n")
        config = tmp_path / "snipcheck.yaml"
        config.write_text(
            json.dumps(
                {
                    "checkers": {
                        "poll_interval": 0.01,
                        "commands": {"python": {"command": [sys.executable, "{file}"], "suffix": ".py"}},
                    }
                }
            )
        )

        result = invoke(runner, tmp_path / "docs", "--config", config)

        assert result.exit_code == EXIT_FAILED
        assert result.stdout.splitlines()[1] == "run.md:1: bad example"

    def test_timeout_fails_snippet(self, runner, tmp_path: Path, write_doc):
        write_doc("docs/slow.md", "```python\nimport time\ntime.sleep(30)\n```\n\n```python\nx = 1\n```\n")
        config = tmp_path / "snipcheck.yaml"
        config.write_text(
            json.dumps(
                {
                    "checkers": {
                        "poll_interval": 0.01,
                        "commands": {"python": {"command": [sys.executable, "{file}"], "suffix": ".py"}},
                    }
                }
            )
        )

        result = invoke(runner, tmp_path / "docs", "--config", config, "--timeout", "0.5")

        assert result.exit_code == EXIT_FAILED
        assert result.stdout == "total=2 passed=1 failed=1 skipped=0\nslow.md:1: timeout\n"
