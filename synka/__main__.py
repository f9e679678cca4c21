"""Entry point for `python -m synka`.

Usage:
    python -m synka --config /etc/synka/config.yaml
"""

from __future__ import annotations

from synka.cli import cli

cli()
