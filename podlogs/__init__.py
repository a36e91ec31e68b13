"""Concurrent discovery and archival of Kubernetes container logs."""

__version__ = "0.1.0"
