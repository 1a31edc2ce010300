#!/usr/bin/env python3
"""Check that pyproject.toml, version.py and the FastAPI app agree on the release version."""

from __future__ import annotations

import re
import tomllib
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
PYPROJECT_FILE = REPO_ROOT / "pyproject.toml"
VERSION_FILE = REPO_ROOT / "backend" / "polar_passport" / "version.py"
MAIN_FILE = REPO_ROOT / "backend" / "polar_passport" / "main.py"


def _read(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def parse_app_version(version_text: str) -> str | None:
    match = re.search(r'^APP_VERSION\s*=\s*"([^"]+)"\s*$', version_text, flags=re.MULTILINE)
    if not match:
        return None
    return match.group(1).strip()


def is_semver(version: str) -> bool:
    return re.fullmatch(r"\d+\.\d+\.\d+", version) is not None


def collect_errors(repo_root: Path = REPO_ROOT) -> tuple[str | None, list[str]]:
    pyproject_file = repo_root / PYPROJECT_FILE.relative_to(REPO_ROOT)
    version_file = repo_root / VERSION_FILE.relative_to(REPO_ROOT)
    main_file = repo_root / MAIN_FILE.relative_to(REPO_ROOT)

    errors = [f"Missing file: {path}" for path in (pyproject_file, version_file, main_file) if not path.exists()]
    if errors:
        return None, errors

    app_version = parse_app_version(_read(version_file))
    if app_version is None:
        return None, [f"Could not parse APP_VERSION from {version_file}"]
    if not is_semver(app_version):
        errors.append(f"APP_VERSION must follow X.Y.Z semantic versioning, found: {app_version}")

    project_version = tomllib.loads(_read(pyproject_file)).get("project", {}).get("version")
    if project_version != app_version:
        errors.append(f"pyproject.toml version {project_version!r} does not match APP_VERSION {app_version!r}.")

    main_text = _read(main_file)
    if "from polar_passport.version import APP_VERSION" not in main_text:
        errors.append("main.py must import APP_VERSION from polar_passport.version.")
    if re.search(r"FastAPI\([^)]*version\s*=\s*APP_VERSION", main_text, flags=re.DOTALL) is None:
        errors.append("main.py must set FastAPI version=APP_VERSION.")

    return app_version, errors


def main() -> int:
    app_version, errors = collect_errors()
    if errors:
        for error in errors:
            print(f"[ERROR] {error}")
        return 1

    print(f"[OK] Release consistency checks passed for v{app_version}.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
