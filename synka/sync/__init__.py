"""Sync policy evaluation and the per-key multi-cluster Sync Engine."""

from synka.sync.engine import SyncEngine, SyncOutcome, clean_payload
from synka.sync.policy import (
    CLUSTERS_ANNOTATION,
    SKIP_EXISTING_ANNOTATION,
    SYNC_ANNOTATION,
    SyncPolicy,
    parse_bool,
)

__all__ = [
    "CLUSTERS_ANNOTATION",
    "SKIP_EXISTING_ANNOTATION",
    "SYNC_ANNOTATION",
    "SyncEngine",
    "SyncOutcome",
    "SyncPolicy",
    "clean_payload",
    "parse_bool",
]
