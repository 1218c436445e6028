"""Prometheus instrumentation."""

from .metrics import PrometheusExporter

__all__ = ["PrometheusExporter"]
