"""Prometheus exporter for Rainforest Eagle power readings."""

__version__ = "0.1.0"
