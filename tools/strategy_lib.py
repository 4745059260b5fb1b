#!/usr/bin/env python3
"""Strategy document validation library.

Checks strategy JSON documents before they are imported by the strategy loader:

  1. Filename convention (lowercase, hyphenated, .json)
  2. Parseable JSON with an object at the top level
  3. Field checks against schemas/strategy_schema_v1.json
     (required fields, optional fields with import defaults, category enum,
     example records, unknown keys)
  4. id uniqueness across the whole document set

Nothing here prints except log(). Reporting belongs to tools/validate_strategies.py.
"""

from __future__ import annotations

import json
import os
import re
import sys
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import jsonschema

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_SCHEMA_PATH = REPO_ROOT / "schemas" / "strategy_schema_v1.json"

STRATEGY_EXT = ".json"
FILENAME_RE = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*\.json$")

# Keywords that describe a container's members, not the container itself.
_MEMBER_KEYWORDS = ("items", "properties", "required")


def log(msg: str, level: str = "INFO"):
    timestamp = datetime.now().strftime("%H:%M:%S")
    stream = sys.stderr if level == "ERROR" else sys.stdout
    print(f"[{timestamp}] [{level}] {msg}", file=stream, flush=True)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class ValidationResult:
    """Diagnostics for one strategy file, plus its id when one was extractable."""

    filename: str
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    strategy_id: str | None = None

    def error(self, msg: str):
        self.errors.append(msg)

    def warn(self, msg: str):
        self.warnings.append(msg)

    @property
    def ok(self) -> bool:
        return len(self.errors) == 0


@dataclass
class DuplicateReport:
    """Outcome of the cross-file id check."""

    errors: list[str] = field(default_factory=list)
    duplicates: dict[str, list[str]] = field(default_factory=dict)
    unique_ids: int = 0

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def confirmation(self) -> str | None:
        if self.errors:
            return None
        return f"All {self.unique_ids} strategy IDs are unique"


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

def _container_only(subschema: dict) -> dict:
    return {k: v for k, v in subschema.items() if k not in _MEMBER_KEYWORDS}


class StrategySchema:
    """Per-field constraints read from the strategy JSON Schema.

    Only field-level constraints are taken from the schema. Whether a field may
    be absent, and what the importer defaults it to, is decided by the checks
    below so that each field yields at most one diagnostic.
    """

    def __init__(self, schema: dict):
        jsonschema.Draft202012Validator.check_schema(schema)
        self.schema = schema
        properties = schema.get("properties", {})
        self.known_fields: tuple[str, ...] = tuple(properties)
        self.categories: list[str] = list(properties.get("category", {}).get("enum", []))
        self._fields = {
            name: jsonschema.Draft202012Validator(_container_only(sub))
            for name, sub in properties.items()
        }

        items = properties.get("examples", {}).get("items", {})
        self._example_shape = jsonschema.Draft202012Validator(_container_only(items))
        self.example_fields: tuple[str, ...] = tuple(items.get("properties", {}))
        self._example_fields = {
            name: jsonschema.Draft202012Validator(sub)
            for name, sub in items.get("properties", {}).items()
        }

    def accepts(self, name: str, value) -> bool:
        return self._fields[name].is_valid(value)

    def accepts_example(self, value) -> bool:
        return self._example_shape.is_valid(value)

    def accepts_example_field(self, name: str, value) -> bool:
        return self._example_fields[name].is_valid(value)


def load_schema(path: Path | str = DEFAULT_SCHEMA_PATH) -> StrategySchema:
    """Load and check the strategy schema.

    Raises OSError, json.JSONDecodeError or jsonschema.SchemaError.
    """
    with open(path, encoding="utf-8") as f:
        return StrategySchema(json.load(f))


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

def discover_documents(directory: Path | str, ext: str = STRATEGY_EXT) -> list[str]:
    """Return entry names in directory ending with ext, sorted.

    OSError from listing the directory propagates to the caller.
    """
    return sorted(name for name in os.listdir(directory) if name.endswith(ext))


# ---------------------------------------------------------------------------
# Per-document checks
# ---------------------------------------------------------------------------

def _reject_constant(token: str):
    raise ValueError(f"{token} is not valid JSON")


def parse_document(raw: bytes):
    """Decode and parse one document. Raises ValueError on failure."""
    try:
        return json.loads(raw.decode("utf-8-sig"), parse_constant=_reject_constant)
    except RecursionError as e:
        raise ValueError(f"nesting too deep ({e})") from e


def _json_repr(value) -> str:
    return json.dumps(value, ensure_ascii=False)


def check_filename(filename: str, result: ValidationResult):
    if not FILENAME_RE.match(filename):
        result.error(f'Filename "{filename}" must be lowercase, hyphenated (e.g., my-strategy.json)')


def check_id(doc: dict, schema: StrategySchema, result: ValidationResult):
    if "id" not in doc or not schema.accepts("id", doc["id"]):
        result.error('Required field "id" is missing or not a non-empty string')
        return
    strategy_id = doc["id"]
    result.strategy_id = strategy_id
    stem = Path(result.filename).stem
    if strategy_id != stem:
        result.warn(f'id "{strategy_id}" does not match filename stem "{stem}"')


def check_name(doc: dict, schema: StrategySchema, result: ValidationResult):
    if "name" not in doc or not schema.accepts("name", doc["name"]):
        result.error('Required field "name" is missing or not a non-empty string')


def check_supplement(doc: dict, schema: StrategySchema, result: ValidationResult):
    if "supplement" not in doc or not schema.accepts("supplement", doc["supplement"]):
        result.error('Required field "supplement" is missing or not a string')


def check_description(doc: dict, schema: StrategySchema, result: ValidationResult):
    if "description" not in doc:
        result.warn('Field "description" is missing (will default to empty string on import)')
    elif not schema.accepts("description", doc["description"]):
        result.error('Field "description" must be a string')


def check_category(doc: dict, schema: StrategySchema, result: ValidationResult):
    if "category" not in doc:
        result.warn('Field "category" is missing (will default to "general" on import)')
    elif not schema.accepts("category", doc["category"]):
        result.error(
            f'Field "category" is {_json_repr(doc["category"])}, '
            f"must be one of: {', '.join(schema.categories)}"
        )


def check_examples(doc: dict, schema: StrategySchema, result: ValidationResult):
    if "examples" not in doc:
        result.warn('Field "examples" is missing (will default to empty array on import)')
        return
    examples = doc["examples"]
    if not schema.accepts("examples", examples):
        result.error('Field "examples" must be an array')
        return

    wanted = " and ".join(f'"{name}"' for name in schema.example_fields)
    for i, example in enumerate(examples):
        if not schema.accepts_example(example):
            result.error(f"examples[{i}]: must be an object with {wanted} strings")
            continue
        for name in schema.example_fields:
            if name not in example or not schema.accepts_example_field(name, example[name]):
                result.error(f'examples[{i}]: "{name}" must be a string')


def check_unknown_fields(doc: dict, schema: StrategySchema, result: ValidationResult):
    for key in doc:
        if key not in schema.known_fields:
            result.warn(f'Unknown field "{key}" (will be ignored on import)')


# Independent checks, run in order once a document has passed the parse gate.
FIELD_CHECKS = (
    check_id,
    check_name,
    check_supplement,
    check_description,
    check_category,
    check_examples,
    check_unknown_fields,
)


def validate_document(filename: str, raw: bytes, schema: StrategySchema) -> ValidationResult:
    """Validate one strategy document.

    The filename check always runs. A parse failure or a non-object top level
    stops the document there with a single error and no extracted id. Past that
    gate every field check runs and appends to the same result.
    """
    result = ValidationResult(filename)
    check_filename(filename, result)

    try:
        doc = parse_document(raw)
    except ValueError as e:
        result.error(f"Invalid JSON: {e}")
        return result

    if not isinstance(doc, dict):
        result.error("Top-level value must be a JSON object")
        return result

    for check in FIELD_CHECKS:
        check(doc, schema, result)
    return result


def validate_file(path: Path, schema: StrategySchema) -> ValidationResult:
    """Read and validate one strategy file. An unreadable file is a single error."""
    try:
        raw = path.read_bytes()
    except OSError as e:
        result = ValidationResult(path.name)
        check_filename(path.name, result)
        result.error(f"Could not read file: {e.strerror or e}")
        return result
    return validate_document(path.name, raw, schema)


# ---------------------------------------------------------------------------
# Cross-document checks
# ---------------------------------------------------------------------------

def find_duplicates(id_to_filenames: dict[str, list[str]]) -> DuplicateReport:
    """Flag every id declared by more than one file, filenames in discovery order."""
    report = DuplicateReport(unique_ids=len(id_to_filenames))
    for strategy_id, filenames in id_to_filenames.items():
        if len(filenames) > 1:
            report.duplicates[strategy_id] = list(filenames)
            report.errors.append(f'Duplicate id "{strategy_id}" in: {", ".join(filenames)}')
    return report
