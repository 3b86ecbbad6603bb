#!/usr/bin/env python3
"""
Lint and format the bot's sources with ruff, isort and black.

    python lint.py           # fix in place
    python lint.py --check   # report only, for CI
"""

import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).parent

TARGETS = ["voicerecap", "cogs", "tests", "main.py", "lint.py"]


def build_operations(check_only: bool) -> list[tuple[list[str], str]]:
    if check_only:
        return [
            (["ruff", "check", *TARGETS], "Ruff linting"),
            (["isort", "--check-only", *TARGETS], "isort import order check"),
            (["black", "--check", *TARGETS], "Black formatting check"),
        ]
    return [
        (["ruff", "check", "--fix", *TARGETS], "Ruff auto-fix"),
        (["isort", *TARGETS], "isort import sorting"),
        (["black", *TARGETS], "Black code formatting"),
    ]


def run_command(command: list[str], description: str) -> bool:
    """Run one tool from the project root and report whether it exited cleanly."""
    print(f"\n{'=' * 80}\n{description}: {' '.join(command)}\n{'=' * 80}\n")
    passed = subprocess.run(command, cwd=ROOT).returncode == 0
    print(f"\n{'✅' if passed else '❌'} {description}\n")
    return passed


def main() -> int:
    check_only = "--check" in sys.argv
    print("\n🔍 CHECK-ONLY mode\n" if check_only else "\n🔧 AUTO-FIX mode\n")

    operations = build_operations(check_only)
    results = [run_command(command, description) for command, description in operations]

    print(f"\n{'=' * 80}\nSUMMARY\n{'=' * 80}\n")
    for (_, description), passed in zip(operations, results):
        print(f"{'✅ PASSED' if passed else '❌ FAILED'}: {description}")

    if all(results):
        print("\n🎉 Done.\n")
        return 0

    if check_only:
        print("\n⚠️  Checks failed. Run 'python lint.py' to auto-fix.\n")
    return 1


if __name__ == "__main__":
    sys.exit(main())
