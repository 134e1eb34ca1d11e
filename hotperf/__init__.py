"""Decode perf data stream event payloads, analyse them, and prepare perf recording runs."""

__version__ = "0.1.0"