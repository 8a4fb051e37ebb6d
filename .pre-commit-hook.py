#!/usr/bin/env python
"""
Pre-commit hook for the governorate console

Ensures the test suite passes and the app modules import before committing.
Install with:
    cp .pre-commit-hook.py .git/hooks/pre-commit
    chmod +x .git/hooks/pre-commit
"""

import importlib
import subprocess
import sys

MODULES = (
    "api.app",
    "api.routes.frontend",
    "api.routes.session",
    "utils",
)


def run_tests():
    """Run the pytest suite before commit."""
    print("Running tests...")
    result = subprocess.run([sys.executable, "-m", "pytest", "-q", "tests"], cwd=".")

    if result.returncode != 0:
        print("\n[FAILED] Tests failed.")
        print("Please fix the issues before committing.")
        return False

    print("\n[PASSED] All tests passed.")
    return True


def check_imports():
    """Verify the app modules import without errors."""
    print("\nVerifying module imports...")
    try:
        for name in MODULES:
            importlib.import_module(name)
        print("[PASSED] All modules import successfully.")
        return True
    except Exception as e:
        print(f"\n[FAILED] Import error: {e}")
        return False


def main():
    print("=" * 70)
    print("PRE-COMMIT HOOK: governorate console")
    print("=" * 70)

    imports_pass = check_imports()
    tests_pass = imports_pass and run_tests()

    if tests_pass:
        print("\nAll pre-commit checks passed. Proceeding with commit.")
        return 0
    print("\nPre-commit checks failed. Please fix errors before committing.")
    return 1


if __name__ == "__main__":
    sys.exit(main())
