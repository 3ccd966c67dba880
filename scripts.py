#!/usr/bin/env python3
"""Development scripts for TicketDesk."""

import subprocess
import sys


def start():
    """Start the development server."""
    from main import main
    main()


def test():
    """Run the test suite."""
    result = subprocess.run(["pytest", "tests/"])
    sys.exit(result.returncode)


def migrate():
    """Apply database migrations."""
    subprocess.run(["alembic", "upgrade", "head"])


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python scripts.py <command>")
        print("Commands: start, test, migrate")
        sys.exit(1)

    command = sys.argv[1].replace("-", "_")
    if hasattr(sys.modules[__name__], command):
        getattr(sys.modules[__name__], command)()
    else:
        print(f"Unknown command: {sys.argv[1]}")
        sys.exit(1)
