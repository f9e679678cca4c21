"""Per-object sync policy derived from metadata annotations."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

SYNC_ANNOTATION = "synka.io/sync"
SKIP_EXISTING_ANNOTATION = "synka.io/skip-existing"
# Reserved for per-object cluster targeting; not read by the Sync Engine.
CLUSTERS_ANNOTATION = "synka.io/clusters"

_TRUE_VALUES = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_VALUES = frozenset({"0", "f", "F", "FALSE", "false", "False"})


def parse_bool(value: str) -> bool:
    """Parse an annotation boolean.

    Raises:
        ValueError: if *value* is not one of the accepted spellings.
    """
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean: {value!r}")


def _annotation_flag(annotations: Mapping[str, str], key: str) -> bool:
    try:
        return parse_bool(annotations.get(key, ""))
    except ValueError:
        return False


@dataclass(frozen=True)
class SyncPolicy:
    """How one object is replicated.

    ``sync`` must be explicitly true for the object to be replicated at all.
    ``skip_existing`` leaves objects that already exist on a target untouched.
    """

    sync: bool = False
    skip_existing: bool = False

    @classmethod
    def from_annotations(cls, annotations: Mapping[str, str] | None) -> SyncPolicy:
        """Derive a policy; absent or unparsable values count as false."""
        annotations = annotations or {}
        return cls(
            sync=_annotation_flag(annotations, SYNC_ANNOTATION),
            skip_existing=_annotation_flag(annotations, SKIP_EXISTING_ANNOTATION),
        )
