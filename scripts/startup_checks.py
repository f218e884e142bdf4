#!/usr/bin/env python3
"""Startup checks for environment and dependencies.

Reports missing env vars, a missing service-account key file and missing
Python packages before the service or its cron jobs are started.

It exits non-zero when run with `raise_on_error=True` inside CI or local checks.
"""
import importlib
import os
import sys

from dotenv import load_dotenv

load_dotenv()

REQUIRED_ENV = ["API_KEY", "LEDGER_SPREADSHEET_ID", "GOOGLE_APPLICATION_CREDENTIALS"]

REQUIRED_MODULES = [
    ("fastapi", "fastapi"),
    ("pydantic", "pydantic"),
    ("dateutil", "python-dateutil"),
    ("googleapiclient", "google-api-python-client"),
    ("google.oauth2", "google-auth"),
]

NUMERIC_ENV = ["NOTICE_WINDOW_DAYS", "DEFAULT_HORIZON_DAYS", "PORT"]


def _module_available(name: str) -> bool:
    try:
        importlib.import_module(name)
        return True
    except ImportError:
        return False


def run_checks(raise_on_error: bool = True):
    errors = []
    warnings = []

    for k in REQUIRED_ENV:
        if not os.getenv(k):
            errors.append(f"Missing env var: {k}")

    cred = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
    if cred:
        cred = os.path.abspath(cred.strip())
        if not os.path.isfile(cred):
            errors.append(f"GOOGLE_APPLICATION_CREDENTIALS file not found: {cred}")

    for k in NUMERIC_ENV:
        v = (os.getenv(k) or "").strip()
        if v and not v.isdigit():
            warnings.append(f"{k} is not a positive integer ({v!r}); the default is used")

    if not os.getenv("NOTIFY_RECIPIENTS"):
        warnings.append("NOTIFY_RECIPIENTS is empty; due notices have no recipients")

    for mod, pkg in REQUIRED_MODULES:
        if not _module_available(mod):
            errors.append(f"Missing Python module: {mod} (install package: {pkg})")

    report = {"errors": errors, "warnings": warnings}
    if errors and raise_on_error:
        msg = "Startup checks failed:\n" + "\n".join(errors + warnings)
        raise SystemExit(msg)
    return report


def main():
    report = run_checks(raise_on_error=False)
    print("STARTUP CHECKS:")
    print("Errors:", report.get("errors"))
    print("Warnings:", report.get("warnings"))
    if report.get("errors"):
        missing_pkgs = []
        for err in report.get("errors", []):
            if "install package:" in err:
                missing_pkgs.append(err.split("install package:")[-1].strip().rstrip(")"))

        if missing_pkgs:
            print("\nSuggested fix:")
            print("pip install " + " ".join(sorted(set(missing_pkgs))))

        sys.exit(2)


if __name__ == "__main__":
    main()
