"""
CLI layer for jkrollout.

A Typer application whose commands delegate to the operations layer
(``jkrollout.ops``) and the kernel inventory. This package handles only
terminal transport: argument parsing, output, and mapping an ``Err`` to the
process exit code.

Entry point::

    jkrollout --help
"""

from jkrollout.cli.app import app

__all__ = ["app"]
