"""synka command-line interface.

Exposes:
    cli -- Click command entry point (registered as the ``synka`` script).
"""

from synka.cli.main import cli

__all__ = ["cli"]
