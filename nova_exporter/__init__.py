"""Prometheus exporter for OpenStack Compute (Nova)."""

__version__ = "0.1.0"
