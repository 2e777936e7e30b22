"""Entry point for running the CLI as a module.

Usage:
    python -m voxelbang.cli
"""

from voxelbang.cli.app import app

if __name__ == "__main__":
    app()
