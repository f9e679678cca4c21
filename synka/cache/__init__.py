"""Cache layer for synka.

Submodules:
    remote_cache -- Key-indexed mirror of one watched resource collection,
                    written only by the Watch Reflector.
"""

from synka.cache.remote_cache import RemoteCache

__all__ = ["RemoteCache"]
