#!/usr/bin/env python3
"""Validate every strategy JSON file in strategies/.

Run locally before submitting a strategy:

  python tools/validate_strategies.py
  python tools/validate_strategies.py --strategies-dir path/to/strategies --report out.json

Optional settings are read from config/strategy_validator.yaml (or --config);
command-line flags take precedence over the config file.

Exit codes:
  0  every file passed and all strategy ids are unique
  1  one or more errors, no strategy files found, or unreadable directory/schema
  2  bad configuration
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import dataclass, field
from pathlib import Path

import jsonschema
import yaml

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from tools.strategy_lib import (  # noqa: E402
    DEFAULT_SCHEMA_PATH,
    STRATEGY_EXT,
    DuplicateReport,
    ValidationResult,
    discover_documents,
    find_duplicates,
    load_schema,
    log,
    validate_file,
)

DEFAULT_STRATEGIES_DIR = REPO_ROOT / "strategies"
DEFAULT_CONFIG_PATH = REPO_ROOT / "config" / "strategy_validator.yaml"
CONFIG_KEYS = {"strategies_dir", "schema", "report"}


class ConfigError(ValueError):
    pass


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class Settings:
    strategies_dir: Path = DEFAULT_STRATEGIES_DIR
    schema_path: Path = DEFAULT_SCHEMA_PATH
    report_path: Path | None = None
    quiet: bool = False


def load_config(path: Path, required: bool = False) -> dict:
    """Read the YAML config. A missing file is only an error when required."""
    if not path.exists():
        if required:
            raise ConfigError(f"Config file not found: {path}")
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Could not read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Config file {path} is not valid YAML: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    unknown = sorted(set(map(str, data)) - CONFIG_KEYS)
    if unknown:
        raise ConfigError(f"Unknown config key(s) in {path}: {', '.join(unknown)}")
    return data


def _repo_path(value) -> Path:
    p = Path(str(value))
    return p if p.is_absolute() else REPO_ROOT / p


def resolve_settings(args: argparse.Namespace) -> Settings:
    config_path = Path(args.config) if args.config else DEFAULT_CONFIG_PATH
    config = load_config(config_path, required=bool(args.config))
    if config:
        log(f"Using config {config_path}")

    settings = Settings(quiet=args.quiet)
    if config.get("strategies_dir"):
        settings.strategies_dir = _repo_path(config["strategies_dir"])
    if config.get("schema"):
        settings.schema_path = _repo_path(config["schema"])
    if config.get("report"):
        settings.report_path = _repo_path(config["report"])

    if args.strategies_dir:
        settings.strategies_dir = Path(args.strategies_dir)
    if args.schema:
        settings.schema_path = Path(args.schema)
    if args.report:
        settings.report_path = Path(args.report)
    return settings


# ---------------------------------------------------------------------------
# Run state
# ---------------------------------------------------------------------------

@dataclass
class RunState:
    """Everything accumulated over one validation pass."""

    files: list[str] = field(default_factory=list)
    results: list[ValidationResult] = field(default_factory=list)
    id_map: dict[str, list[str]] = field(default_factory=dict)
    total_errors: int = 0
    total_warnings: int = 0
    passed_files: int = 0
    cross_file: DuplicateReport | None = None

    def record(self, result: ValidationResult):
        self.results.append(result)
        self.total_errors += len(result.errors)
        self.total_warnings += len(result.warnings)
        if result.ok:
            self.passed_files += 1
        if result.strategy_id is not None:
            self.id_map.setdefault(result.strategy_id, []).append(result.filename)

    def record_cross_file(self, report: DuplicateReport):
        self.cross_file = report
        self.total_errors += len(report.errors)

    @property
    def failed_files(self) -> int:
        return len(self.results) - self.passed_files

    @property
    def exit_code(self) -> int:
        return 1 if self.total_errors > 0 else 0


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------

def print_file_result(result: ValidationResult, dir_label: str, quiet: bool = False):
    if quiet and result.ok:
        return
    print(f"\nValidating {dir_label}/{result.filename}")
    if not result.errors and not result.warnings:
        print("  ok")
        return
    for msg in result.errors:
        print(f"  FAIL  {msg}")
    if not quiet:
        for msg in result.warnings:
            print(f"  WARN  {msg}")


def print_cross_file(report: DuplicateReport):
    print("\nCross-file checks:")
    for msg in report.errors:
        print(f"  FAIL  {msg}")
    if report.confirmation:
        print(f"  ok    {report.confirmation}")


def print_summary(state: RunState):
    print(
        f"\nResults: {state.passed_files} passed, {state.failed_files} failed, "
        f"{state.total_warnings} warnings"
    )


def write_report(state: RunState, path: Path):
    cross = state.cross_file or DuplicateReport()
    report = {
        "valid": state.exit_code == 0,
        "files": [
            {
                "filename": r.filename,
                "errors": r.errors,
                "warnings": r.warnings,
                "id": r.strategy_id,
            }
            for r in state.results
        ],
        "duplicates": [
            {"id": sid, "filenames": filenames}
            for sid, filenames in cross.duplicates.items()
        ],
        "passed": state.passed_files,
        "failed": state.failed_files,
        "warnings": state.total_warnings,
        "unique_ids": cross.unique_ids,
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(report, f, ensure_ascii=False, indent=2)


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

def validate_all(strategies_dir: Path, files: list[str], schema, quiet: bool = False) -> RunState:
    """Validate each file in order, then check ids across files."""
    state = RunState(files=list(files))
    for filename in files:
        result = validate_file(strategies_dir / filename, schema)
        state.record(result)
        print_file_result(result, strategies_dir.name, quiet)

    state.record_cross_file(find_duplicates(state.id_map))
    print_cross_file(state.cross_file)
    print_summary(state)
    return state


def run(settings: Settings) -> int:
    try:
        schema = load_schema(settings.schema_path)
    except (OSError, ValueError, jsonschema.SchemaError) as e:
        log(f"Could not load schema {settings.schema_path}: {e}", "ERROR")
        return 1

    strategies_dir = settings.strategies_dir
    try:
        files = discover_documents(strategies_dir)
    except OSError as e:
        log(f"Could not read strategies directory {strategies_dir}: {e}", "ERROR")
        return 1

    if not files:
        log(f"No {STRATEGY_EXT} files found in {strategies_dir.name}/", "ERROR")
        return 1

    state = validate_all(strategies_dir, files, schema, quiet=settings.quiet)

    if settings.report_path:
        try:
            write_report(state, settings.report_path)
        except OSError as e:
            log(f"Could not write report {settings.report_path}: {e}", "ERROR")
            return 1
        log(f"Report written to {settings.report_path}")
    return state.exit_code


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Validate strategy JSON files.")
    ap.add_argument("--strategies-dir", default=None,
                    help=f"Directory of strategy files (default: {DEFAULT_STRATEGIES_DIR})")
    ap.add_argument("--schema", default=None,
                    help=f"Strategy JSON Schema (default: {DEFAULT_SCHEMA_PATH})")
    ap.add_argument("--config", default=None,
                    help=f"YAML settings file (default: {DEFAULT_CONFIG_PATH}, if present)")
    ap.add_argument("--report", default=None, help="Write a JSON validation report to this path")
    ap.add_argument("--quiet", action="store_true",
                    help="Only print files with errors, the cross-file checks and the summary")
    args = ap.parse_args(argv)

    try:
        settings = resolve_settings(args)
    except ConfigError as e:
        log(str(e), "ERROR")
        return 2
    return run(settings)


if __name__ == "__main__":
    sys.exit(main())
