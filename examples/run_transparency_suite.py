#!/usr/bin/env python3
"""Demo: run the transparency suite programmatically.

Loads examples/suites/, runs every check and scenario through the
sandbox runners, and prints a one-line verdict per unit.

Run from the project root (with the package installed):
    python examples/run_transparency_suite.py
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from transparency_sandbox.config import load_config
from transparency_sandbox.suite import load_suite_files, run_suite
from transparency_sandbox.telemetry import configure_logging

SUITE_DIR = Path(__file__).resolve().parent / "suites"


def main() -> int:
    cfg = load_config()
    configure_logging("warn", json_output=False)

    suite = load_suite_files(SUITE_DIR)
    report = asyncio.run(run_suite(suite, cfg))

    for outcome in report.diagnostics:
        print(f"{outcome.status.upper():<5} {outcome.name}  ({outcome.message})")
    for outcome in report.simulations:
        verdict = "PASS" if outcome.succeeded else "FAIL"
        print(f"{verdict:<5} {outcome.scenario_name}  validated={outcome.validated}")

    print(f"\n{report.failed} failed of {report.total}")
    return 0 if report.all_passed else 1


if __name__ == "__main__":
    raise SystemExit(main())
