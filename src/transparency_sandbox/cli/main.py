"""transparency-sandbox CLI: command-line interface for the sandbox harness.

Commands:
    init            Scaffold a config file and an example suite
    run             Run diagnostic checks and simulations from suite files
    demo            Run the built-in transparency examples
    config show     Show the effective configuration
    config validate Validate a configuration file
"""

from __future__ import annotations

import asyncio
import json
import random
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import click
import yaml

from transparency_sandbox import __version__
from transparency_sandbox.config import (
    ConfigError,
    SandboxConfig,
    find_config,
    load_config,
    validate_config,
)
from transparency_sandbox.examples import run_all_examples
from transparency_sandbox.models import (
    DiagnosticOutcome,
    DiagnosticStatus,
    DiagnosticSummary,
    SimulationOutcome,
    SimulationSummary,
)
from transparency_sandbox.suite.runner import SuiteError, load_suite_files, run_suite
from transparency_sandbox.telemetry import (
    configure_logging,
    init_telemetry,
    shutdown_telemetry,
)

DEFAULT_SUITE_DIR = "./suites"


def _resolve_cfg(config_path: str | None = None) -> SandboxConfig:
    """Load config (explicit path or auto-discover); exit on invalid config."""
    try:
        return load_config(config_path)
    except (ConfigError, FileNotFoundError) as e:
        click.echo(click.style("ERROR", fg="red") + f"  {e}", err=True)
        sys.exit(1)


def _to_jsonable(outcome: Any) -> dict[str, Any]:
    return outcome.model_dump()


# --- Root group ---


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["debug", "info", "warn", "error"]),
    help="Minimum log level (default: from config, else info)",
)
@click.option(
    "--json-logs/--plain-logs",
    default=None,
    help="Emit logs as JSON lines (default: from config)",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str | None, json_logs: bool | None) -> None:
    """Transparency sandbox: run diagnostics and simulations under a deadline."""
    ctx.ensure_object(dict)
    ctx.obj["log_level"] = log_level
    ctx.obj["json_logs"] = json_logs


def _setup_logging(ctx: click.Context, cfg: SandboxConfig) -> None:
    level = ctx.obj.get("log_level") or cfg.app.log_level
    json_logs = ctx.obj.get("json_logs")
    configure_logging(
        level,
        json_output=cfg.telemetry.json_logs if json_logs is None else json_logs,
    )


def _setup_telemetry(ctx: click.Context, cfg: SandboxConfig) -> None:
    """Start tracing when enabled; spans are flushed when the command exits."""
    if init_telemetry(cfg):
        ctx.call_on_close(shutdown_telemetry)


# --- init command ---


_INIT_CONFIG = """\
app:
  name: transparency-sandbox
  environment: development
  log_level: info

telemetry:
  enabled: false
  json_logs: true

sandbox:
  timeout_ms: 30000
  diagnostic_timeout_ms: 60000
  simulation_timeout_ms: 120000
"""

_INIT_SUITE = """\
diagnostics:
  - name: config-validation
    description: Validate transparency configuration
    run: checks.py:config_is_valid

  - name: data-integrity
    description: Verify data integrity
    run: checks.py:data_is_intact

simulations:
  - name: low-load-scenario
    description: Simulate low event load
    input:
      events: 10
    run: checks.py:process_events
    validate: checks.py:is_transparent
"""

_INIT_CHECKS = '''\
"""Checks and scenarios referenced by example.yaml."""


def config_is_valid():
    return True


def data_is_intact():
    return True


async def process_events(data):
    return {"processed": data["events"], "transparent": True}


def is_transparent(output):
    return output["processed"] > 0 and output["transparent"] is True
'''


@cli.command()
@click.argument("directory", default=".")
def init(directory: str) -> None:
    """Scaffold a config file and an example suite in DIRECTORY."""
    root = Path(directory)
    files = {
        root / "transparency-sandbox.yaml": _INIT_CONFIG,
        root / "suites" / "example.yaml": _INIT_SUITE,
        root / "suites" / "checks.py": _INIT_CHECKS,
    }

    created = 0
    for path, content in files.items():
        if path.exists():
            click.echo(click.style("SKIP", fg="yellow") + f"  {path} (already exists)")
            continue
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        click.echo(click.style("CREATE", fg="green") + f"  {path}")
        created += 1

    click.echo(f"\n{created} file(s) created.")
    if created:
        click.echo("Run the example suite with: transparency-sandbox run suites/")


# --- run command ---


@cli.command("run")
@click.argument("suite_path", default=DEFAULT_SUITE_DIR)
@click.option("--config", "config_path", default=None, help="Path to config YAML file")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.pass_context
def run_command(
    ctx: click.Context,
    suite_path: str,
    config_path: str | None,
    json_output: bool,
) -> None:
    """Run the checks and scenarios declared in suite files.

    SUITE_PATH is a YAML file or directory of YAML files.  Exits with
    status 1 if any check fails or any scenario does not succeed.
    """
    cfg = _resolve_cfg(config_path)
    _setup_logging(ctx, cfg)
    _setup_telemetry(ctx, cfg)

    try:
        suite = load_suite_files(Path(suite_path))
    except SuiteError as e:
        click.echo(click.style("ERROR", fg="red") + f"  {e}", err=True)
        sys.exit(1)

    report = asyncio.run(run_suite(suite, cfg))

    if json_output:
        click.echo(json.dumps({
            "diagnostics": [_to_jsonable(o) for o in report.diagnostics],
            "simulations": [_to_jsonable(o) for o in report.simulations],
            "summary": {
                "diagnostics": report.diagnostic_summary.counts(),
                "simulations": report.simulation_summary.counts(),
                "all_passed": report.all_passed,
            },
        }, indent=2, default=str))
    else:
        _print_diagnostics(report.diagnostics)
        _print_simulations(report.simulations)
        click.echo("")
        if report.all_passed:
            click.echo(click.style(
                f"All {report.total} unit(s) passed.", fg="green", bold=True,
            ))
        else:
            passed = report.total - report.failed
            click.echo(
                click.style(f"{report.failed} failed", fg="red", bold=True)
                + f", {passed} passed or skipped, {report.total} total."
            )

    if not report.all_passed:
        sys.exit(1)


_STATUS_STYLE = {
    DiagnosticStatus.PASS: ("  PASS", "green"),
    DiagnosticStatus.FAIL: ("  FAIL", "red"),
    DiagnosticStatus.SKIP: ("  SKIP", "yellow"),
}


def _print_diagnostics(outcomes: Sequence[DiagnosticOutcome]) -> None:
    if not outcomes:
        return
    click.echo(click.style("Diagnostics", bold=True))
    for outcome in outcomes:
        label, color = _STATUS_STYLE[outcome.status]
        line = click.style(label, fg=color) + f"  {outcome.name}"
        if outcome.status is DiagnosticStatus.FAIL:
            line += f"  ({outcome.message})"
        elif outcome.status is DiagnosticStatus.PASS:
            line += f"  [{outcome.elapsed_ms}ms]"
        click.echo(line)

    summary = DiagnosticSummary(outcomes)
    click.echo(
        f"  {summary.passed} passed, {summary.failed} failed, "
        f"{summary.skipped} skipped"
    )


def _print_simulations(outcomes: Sequence[SimulationOutcome]) -> None:
    if not outcomes:
        return
    click.echo(click.style("Simulations", bold=True))
    for outcome in outcomes:
        if outcome.succeeded:
            click.echo(
                click.style("  PASS", fg="green")
                + f"  {outcome.scenario_name}  [{outcome.elapsed_ms}ms]"
            )
            continue
        if outcome.failure is not None:
            reason = f"{outcome.failure.kind}: {outcome.failure.message}"
        elif outcome.validation_error is not None:
            reason = f"validator raised: {outcome.validation_error.message}"
        else:
            reason = "output not validated"
        click.echo(
            click.style("  FAIL", fg="red")
            + f"  {outcome.scenario_name}  ({reason})"
        )

    summary = SimulationSummary(outcomes)
    click.echo(f"  {summary.succeeded} successful, {summary.failed} failed")


# --- demo command ---


@cli.command()
@click.option("--seed", type=int, default=None, help="Seed for the basic example's score")
@click.pass_context
def demo(ctx: click.Context, seed: int | None) -> None:
    """Run the built-in transparency examples."""
    cfg = _resolve_cfg()
    _setup_logging(ctx, cfg)
    _setup_telemetry(ctx, cfg)

    report = asyncio.run(run_all_examples(random.Random(seed), cfg))

    click.echo(click.style("Basic sandbox", bold=True))
    basic = report.basic
    if basic is not None and basic.succeeded:
        click.echo(click.style("  OK", fg="green") + f"  {basic.value}")
    elif basic is not None and basic.failure is not None:
        click.echo(click.style("  FAIL", fg="red") + f"  {basic.failure.message}")

    _print_diagnostics(report.diagnostics)
    _print_simulations(report.simulations)


# --- config group ---


@cli.group()
def config() -> None:
    """Configuration commands."""


@config.command("show")
@click.option("--config", "config_path", default=None, help="Path to config YAML file")
@click.option("--json-output", is_flag=True, help="Output as JSON")
def config_show(config_path: str | None, json_output: bool) -> None:
    """Show the effective configuration (file + environment)."""
    cfg = _resolve_cfg(config_path)
    data = cfg.model_dump(mode="json")

    if json_output:
        click.echo(json.dumps(data, indent=2))
        return

    source = data.pop("config_path") or "(defaults, no config file found)"
    click.echo(f"Config: {source}")
    click.echo(yaml.safe_dump(data, default_flow_style=False, sort_keys=False).rstrip())


@config.command("validate")
@click.argument("config_file", required=False)
def config_validate(config_file: str | None) -> None:
    """Validate a configuration file (default: auto-discovered)."""
    if config_file is None:
        found = find_config()
        if found is None:
            click.echo("No config file found to validate.")
            return
        path = found
    else:
        path = Path(config_file)
        if not path.is_file():
            click.echo(f"Config file not found: {path}")
            sys.exit(1)

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        click.echo(click.style("FAIL", fg="red") + f"  {path}: cannot read: {e}")
        sys.exit(1)
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        click.echo(click.style("FAIL", fg="red") + f"  {path}: invalid YAML: {e}")
        sys.exit(1)

    result = validate_config(data)
    if result.success:
        click.echo(click.style("OK", fg="green") + f"  {path}")
        return

    click.echo(click.style("FAIL", fg="red") + f"  {path}")
    for error in result.errors:
        click.echo(f"  - {error}")
    click.echo(f"\n{len(result.errors)} error(s) found.")
    sys.exit(1)
