"""
CLI layer for jobspine.

Terminal transport only: argument parsing, coloured output and tables.
Scheduling logic lives in :mod:`jobspine.scheduling`.

Entry point::

    jobspine --help
"""

from jobspine.cli.app import app

__all__ = ["app"]
