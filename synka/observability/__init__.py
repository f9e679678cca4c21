"""Logging and Prometheus metrics for synka."""
