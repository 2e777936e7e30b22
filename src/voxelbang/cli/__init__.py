"""voxel-bang CLI.

A command-line interface for running a world server and the scenario suite.

Usage:
    pip install -e .
    vb --help
"""

from voxelbang.cli.app import app

__all__ = ["app"]
