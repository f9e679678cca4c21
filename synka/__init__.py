"""synka: replicate annotated Kubernetes resources across clusters."""

__version__ = "0.1.0"
