"""Resolution and batch-generation pipeline.

This package exposes the tiered resolver, the batch state machine and its
threaded orchestrator, and the service facade that wires them together.
"""

from .batch import BatchPolicy, backoff_seconds
from .orchestrator import BatchHandle, BatchOrchestrator, CancellationToken
from .resolver import TieredResolver
from .service import FluidBibleService

__all__ = [
    "BatchHandle",
    "BatchOrchestrator",
    "BatchPolicy",
    "CancellationToken",
    "FluidBibleService",
    "TieredResolver",
    "backoff_seconds",
]
