"""Controllers: one per watched resource kind, each with its own worker pool."""

from synka.controller.controller import Controller
from synka.controller.worker import WorkerPool

__all__ = ["Controller", "WorkerPool"]
