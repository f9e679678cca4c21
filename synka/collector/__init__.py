"""Collector package for synka.

Submodules
----------
reflector -- WatchReflector: list-then-watch, relist recovery, event dispatch.
"""

from synka.collector.reflector import SourceClient, WatchReflector

__all__ = ["SourceClient", "WatchReflector"]
