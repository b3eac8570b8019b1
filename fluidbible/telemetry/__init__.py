"""Telemetry helpers.

This package emits structured run events for batch generation.
"""

from .logger import RunLogger

__all__ = ["RunLogger"]
