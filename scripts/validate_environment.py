#!/usr/bin/env python3
"""Validate local hostel portal environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from hostel_portal.domain.models import SessionIdentity
from hostel_portal.repository.api_repository import ApiError, ApiTransportError, HostelApiRepository
from hostel_portal.repository.state_store import LocalStateStore, submission_flag_key
from hostel_portal.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="hostel-env-")

    # CHECK 1: Python version >= 3.10
    if sys.version_info >= (3, 10):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.10",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable
    package_specs = ["httpx", "pydantic", "pandas", "streamlit", "pytest", "fastapi"]
    import_errors: list[str] = []
    for module_name in package_specs:
        try:
            importlib.import_module(module_name)
        except ImportError as exc:
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        # CHECK 3: Settings load from the environment
        try:
            base_settings = get_settings()
            ok, line = _print_result("Settings", True, f": API at {base_settings.api_base_url}")
        except ValueError as exc:
            ok, line = _print_result("Settings", False, str(exc))
            results.append(line)
            all_passed = False
            base_settings = None
        else:
            results.append(line)

        if base_settings is not None:
            validation_settings = replace(
                base_settings,
                state_database_path=Path(temp_dir) / "portal_state_validation.db",
                api_timeout_seconds=3.0,
            )
            store = LocalStateStore(validation_settings)

            # CHECK 4: Local state database initialization and round trip
            try:
                store.initialize_database()
                store.save_session(SessionIdentity(role="student", user_id="check", token="token"))
                store.set_flag(submission_flag_key("check"), True)
                if store.load_session() is None or not store.get_flag(submission_flag_key("check")):
                    raise RuntimeError("stored values could not be read back")
                ok, line = _print_result("Local state database", True)
            except Exception as exc:
                ok, line = _print_result("Local state database", False, str(exc))
            results.append(line)
            all_passed = all_passed and ok

            # CHECK 5: API reachability (any HTTP answer counts as reachable)
            repository = HostelApiRepository(validation_settings)
            try:
                repository.get_allocation_status()
                ok, line = _print_result("API reachable", True)
            except ApiTransportError as exc:
                ok, line = _print_result("API reachable", False, exc.message)
            except ApiError as exc:
                ok, line = _print_result("API reachable", True, f": answered {exc.status_code}")
            finally:
                repository.close()
            results.append(line)
            all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Hostel Portal Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
