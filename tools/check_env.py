#!/usr/bin/env python3
"""Environment sanity-check for the strategy validator.

Checks:
- Python version (>= 3.11)
- Required modules importable (PyYAML, jsonschema)
- Installed versions match the exact pins in requirements.txt (mismatch is a warning)
- Repository root discovery (run from anywhere)
"""

from __future__ import annotations

import argparse
import importlib
import platform
import sys
from importlib import metadata
from pathlib import Path


MIN_PY = (3, 11)

# (import name, distribution name)
REQUIRED_MODULES = [
    ("yaml", "PyYAML"),
    ("jsonschema", "jsonschema"),
]


def find_repo_root(start: Path) -> Path | None:
    """Walk parents until a folder holding both strategies/ and tools/ is found."""
    cur = start.resolve()
    for _ in range(8):
        if (cur / "strategies").is_dir() and (cur / "tools").is_dir():
            return cur
        if cur.parent == cur:
            break
        cur = cur.parent
    return None


def parse_pinned_requirements(req_path: Path) -> dict[str, str]:
    """Return {lowercased name: version} for name==version lines."""
    pinned: dict[str, str] = {}
    if not req_path.exists():
        return pinned
    for raw in req_path.read_text(encoding="utf-8").splitlines():
        line = raw.split("#", 1)[0].strip()
        if "==" not in line or ">" in line or "<" in line:
            continue
        name, ver = line.split("==", 1)
        pinned[name.strip().lower()] = ver.strip()
    return pinned


def get_installed_version(dist_name: str) -> str | None:
    try:
        return metadata.version(dist_name)
    except metadata.PackageNotFoundError:
        return None


def check_python_version(version_info=sys.version_info) -> list[str]:
    if tuple(version_info[:2]) >= MIN_PY:
        return []
    found = ".".join(str(p) for p in version_info[:3])
    return [f"Python >= {MIN_PY[0]}.{MIN_PY[1]} required; found {found}."]


def check_imports(modules=REQUIRED_MODULES) -> list[str]:
    issues: list[str] = []
    for module, dist_name in modules:
        try:
            importlib.import_module(module)
        except ImportError as e:
            issues.append(f"Missing module '{module}'. Install '{dist_name}' via requirements.txt. ({e})")
    return issues


def check_pins(pinned: dict[str, str]) -> tuple[list[str], list[str]]:
    """Compare pins with installed versions. Returns (issues, warnings)."""
    issues: list[str] = []
    warnings: list[str] = []
    for name, ver in pinned.items():
        installed = get_installed_version(name)
        if installed is None:
            issues.append(f"Dependency not installed: {name}=={ver}")
        elif installed != ver:
            warnings.append(f"Version mismatch for {name}: required {ver}, installed {installed}")
    return issues, warnings


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Check the strategy validator environment.")
    ap.add_argument("--repo-root", default=None, help="Path to the repository root (contains strategies/)")
    args = ap.parse_args(argv)

    start = Path(args.repo_root) if args.repo_root else Path.cwd()
    repo = find_repo_root(start)
    if repo is None:
        print("ERROR: Could not find the repository root (a folder with strategies/ and tools/). "
              "Run from inside the repository, or pass --repo-root.")
        return 2

    print("Strategy validator environment check")
    print("-" * 72)
    print(f"Repo root: {repo}")
    print(f"Python: {sys.executable} ({platform.python_version()})")
    print(f"OS: {platform.system()} {platform.release()}")

    issues = check_python_version() + check_imports()
    pin_issues, warnings = check_pins(parse_pinned_requirements(repo / "requirements.txt"))
    issues += pin_issues

    print("\nResult:")
    if issues:
        print("ENV CHECK: FAIL")
        for i in issues:
            print(f"- {i}")
        print("\nFix:")
        print("  python -m pip install -r requirements.txt")
        return 2

    if warnings:
        print("ENV CHECK: PASS (WARNINGS)")
        for w in warnings:
            print(f"- {w}")
    else:
        print("ENV CHECK: PASS")
    print("Next:")
    print("  python tools/validate_strategies.py")
    return 0


if __name__ == "__main__":
    sys.exit(main())
