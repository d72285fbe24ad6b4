"""Tests for suite file loading and running."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import pytest

from transparency_sandbox.config import SandboxConfig
from transparency_sandbox.models import DiagnosticStatus, ErrorKind
from transparency_sandbox.suite.runner import (
    Suite,
    SuiteError,
    load_suite_file,
    load_suite_files,
    resolve_callable,
    run_suite,
)

EXAMPLE_SUITES = Path(__file__).resolve().parent.parent / "examples" / "suites"

CHECKS_PY = '''\
import asyncio


def ok():
    return True


def not_ok():
    return False


def explode():
    raise RuntimeError("exploded")


async def slow():
    await asyncio.sleep(1)
    return True


def double(data):
    return {"result": data["value"] * 2}


def is_ten(output):
    return output["result"] == 10


NOT_CALLABLE = 3
'''


def _write_suite(tmp_path: Path, body: str, name: str = "suite.yaml") -> Path:
    (tmp_path / "checks.py").write_text(CHECKS_PY, encoding="utf-8")
    path = tmp_path / name
    path.write_text(body, encoding="utf-8")
    return path


# --- resolve_callable ---


class TestResolveCallable:
    def test_file_reference(self, tmp_path: Path):
        _write_suite(tmp_path, "diagnostics: []\n")
        fn = resolve_callable("checks.py:ok", tmp_path)
        assert fn() is True

    def test_file_module_cached(self, tmp_path: Path):
        _write_suite(tmp_path, "diagnostics: []\n")
        first = resolve_callable("checks.py:ok", tmp_path)
        second = resolve_callable("checks.py:ok", tmp_path)
        assert first is second

    def test_edited_file_reloaded(self, tmp_path: Path):
        _write_suite(tmp_path, "diagnostics: []\n")
        assert resolve_callable("checks.py:ok", tmp_path)() is True

        checks = tmp_path / "checks.py"
        checks.write_text("def ok():\n    return \"edited\"\n", encoding="utf-8")
        stat = checks.stat()
        os.utime(checks, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))

        assert resolve_callable("checks.py:ok", tmp_path)() == "edited"

    def test_module_reference(self, tmp_path: Path):
        fn = resolve_callable("json:dumps", tmp_path)
        assert fn({"a": 1}) == '{"a": 1}'

    def test_dotted_attribute(self, tmp_path: Path):
        fn = resolve_callable("os:path.join", tmp_path)
        assert fn("a", "b").endswith("b")

    @pytest.mark.parametrize("ref", ["no-colon", "a:b:c", ":attr", "target:"])
    def test_malformed(self, tmp_path: Path, ref):
        with pytest.raises(SuiteError, match="Invalid callable reference"):
            resolve_callable(ref, tmp_path)

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(SuiteError, match="not found"):
            resolve_callable("missing.py:fn", tmp_path)

    def test_missing_module(self, tmp_path: Path):
        with pytest.raises(SuiteError, match="Cannot import"):
            resolve_callable("no_such_module_xyz:fn", tmp_path)

    def test_missing_attribute(self, tmp_path: Path):
        _write_suite(tmp_path, "diagnostics: []\n")
        with pytest.raises(SuiteError, match="has no attribute"):
            resolve_callable("checks.py:nope", tmp_path)

    def test_not_callable(self, tmp_path: Path):
        _write_suite(tmp_path, "diagnostics: []\n")
        with pytest.raises(SuiteError, match="not callable"):
            resolve_callable("checks.py:NOT_CALLABLE", tmp_path)

    def test_broken_file(self, tmp_path: Path):
        (tmp_path / "broken.py").write_text("raise ImportError('nope')\n", encoding="utf-8")
        with pytest.raises(SuiteError, match="Error loading"):
            resolve_callable("broken.py:fn", tmp_path)


# --- load_suite_file ---


class TestLoadSuiteFile:
    def test_loads_checks_and_scenarios(self, tmp_path: Path):
        path = _write_suite(tmp_path, """\
diagnostics:
  - name: ok
    description: always passes
    run: checks.py:ok
  - name: skipped
    run: checks.py:not_ok
    skip: true
simulations:
  - name: doubles
    description: doubles the value
    input:
      value: 5
    run: checks.py:double
    validate: checks.py:is_ten
""")
        suite = load_suite_file(path)
        assert [c.name for c in suite.diagnostics] == ["ok", "skipped"]
        assert suite.diagnostics[1].skip is True
        assert suite.diagnostics[1].description == ""
        [scenario] = suite.simulations
        assert scenario.input == {"value": 5}
        assert scenario.validate is not None
        assert suite.total == 3
        assert suite.source_files == [str(path)]

    def test_requires_top_level_key(self, tmp_path: Path):
        path = _write_suite(tmp_path, "checks:\n  - name: x\n")
        with pytest.raises(SuiteError, match="top-level"):
            load_suite_file(path)

    def test_invalid_yaml(self, tmp_path: Path):
        path = _write_suite(tmp_path, "diagnostics: [unclosed\n")
        with pytest.raises(SuiteError, match="Invalid YAML"):
            load_suite_file(path)

    def test_section_must_be_list(self, tmp_path: Path):
        path = _write_suite(tmp_path, "diagnostics:\n  name: x\n")
        with pytest.raises(SuiteError, match="must be a list"):
            load_suite_file(path)

    def test_entry_must_be_mapping(self, tmp_path: Path):
        path = _write_suite(tmp_path, "diagnostics:\n  - just-a-string\n")
        with pytest.raises(SuiteError, match="must be a mapping"):
            load_suite_file(path)

    def test_missing_name(self, tmp_path: Path):
        path = _write_suite(tmp_path, "diagnostics:\n  - run: checks.py:ok\n")
        with pytest.raises(SuiteError, match="missing 'name'"):
            load_suite_file(path)

    def test_missing_run(self, tmp_path: Path):
        path = _write_suite(tmp_path, "simulations:\n  - name: x\n    input: 1\n")
        with pytest.raises(SuiteError, match="missing 'run'"):
            load_suite_file(path)

    def test_non_boolean_skip(self, tmp_path: Path):
        path = _write_suite(
            tmp_path, "diagnostics:\n  - name: x\n    run: checks.py:ok\n    skip: maybe\n",
        )
        with pytest.raises(SuiteError, match="non-boolean 'skip'"):
            load_suite_file(path)

    def test_unreadable_file(self, tmp_path: Path):
        path = tmp_path / "suite.yaml"
        path.write_bytes(b"diagnostics: [\xff\xfe]\n")
        with pytest.raises(SuiteError, match="Cannot read suite file"):
            load_suite_file(path)


class TestLoadSuiteFiles:
    def test_directory_sorted(self, tmp_path: Path):
        _write_suite(tmp_path, "diagnostics:\n  - name: second\n    run: checks.py:ok\n", "b.yml")
        _write_suite(tmp_path, "diagnostics:\n  - name: first\n    run: checks.py:ok\n", "a.yaml")
        suite = load_suite_files(tmp_path)
        assert [c.name for c in suite.diagnostics] == ["first", "second"]
        assert len(suite.source_files) == 2

    def test_directory_named_like_suite_skipped(self, tmp_path: Path):
        (tmp_path / "nested.yaml").mkdir()
        _write_suite(tmp_path, "diagnostics:\n  - name: real\n    run: checks.py:ok\n", "real.yaml")
        suite = load_suite_files(tmp_path)
        assert [c.name for c in suite.diagnostics] == ["real"]

    def test_single_file(self, tmp_path: Path):
        path = _write_suite(tmp_path, "diagnostics:\n  - name: only\n    run: checks.py:ok\n")
        assert [c.name for c in load_suite_files(path).diagnostics] == ["only"]

    def test_missing_path(self, tmp_path: Path):
        with pytest.raises(SuiteError, match="not found"):
            load_suite_files(tmp_path / "nowhere")

    def test_empty_directory(self, tmp_path: Path):
        with pytest.raises(SuiteError, match="No YAML suite files"):
            load_suite_files(tmp_path)


# --- run_suite ---


class TestRunSuite:
    def test_mixed_results(self, tmp_path: Path):
        path = _write_suite(tmp_path, """\
diagnostics:
  - name: ok
    run: checks.py:ok
  - name: not-ok
    run: checks.py:not_ok
  - name: explode
    run: checks.py:explode
  - name: skipped
    run: checks.py:explode
    skip: true
simulations:
  - name: doubles
    input: {value: 5}
    run: checks.py:double
    validate: checks.py:is_ten
  - name: doubles-wrong
    input: {value: 7}
    run: checks.py:double
    validate: checks.py:is_ten
""")
        report = asyncio.run(run_suite(load_suite_file(path)))

        assert [o.status for o in report.diagnostics] == [
            DiagnosticStatus.PASS,
            DiagnosticStatus.FAIL,
            DiagnosticStatus.FAIL,
            DiagnosticStatus.SKIP,
        ]
        assert report.diagnostics[2].message == "exploded"
        assert [o.succeeded for o in report.simulations] == [True, False]
        assert report.simulations[1].output == {"result": 14}
        assert report.total == 6
        assert report.failed == 3
        assert not report.all_passed

    def test_config_timeouts_applied(self, tmp_path: Path):
        path = _write_suite(tmp_path, "diagnostics:\n  - name: slow\n    run: checks.py:slow\n")
        cfg = SandboxConfig(sandbox={"diagnostic_timeout_ms": 20})
        report = asyncio.run(run_suite(load_suite_file(path), cfg))
        [outcome] = report.diagnostics
        assert outcome.status is DiagnosticStatus.FAIL
        assert outcome.metadata["error"].kind is ErrorKind.TIMEOUT

    def test_empty_suite_is_not_passing(self):
        report = asyncio.run(run_suite(Suite()))
        assert report.total == 0
        assert not report.all_passed

    def test_example_suite_passes(self):
        report = asyncio.run(run_suite(load_suite_files(EXAMPLE_SUITES)))
        assert report.diagnostic_summary.counts() == {
            "total": 4, "passed": 3, "failed": 0, "skipped": 1,
        }
        assert report.simulation_summary.counts() == {
            "total": 3, "successful": 3, "failed": 0,
        }
        assert report.all_passed
