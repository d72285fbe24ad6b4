"""Suite files: checks and scenarios declared in YAML."""

from transparency_sandbox.suite.runner import (
    Suite,
    SuiteError,
    SuiteReport,
    load_suite_file,
    load_suite_files,
    resolve_callable,
    run_suite,
)

__all__ = [
    "Suite",
    "SuiteError",
    "SuiteReport",
    "load_suite_file",
    "load_suite_files",
    "resolve_callable",
    "run_suite",
]
