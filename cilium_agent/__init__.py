"""Cilium agent metrics registry and Prometheus exposition endpoint."""

__version__ = "0.1.0"
