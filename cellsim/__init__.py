"""Telemetry aggregation and handover decision core for cellular scenarios."""

__version__ = "0.1.0"
