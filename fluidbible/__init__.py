"""Top-level package for fluidbible.

This package resolves reading-friendly ("fluid") renderings of Bible chapters
through a tiered lookup and drives batch generation across whole books. The
main entry point is `FluidBibleService`.
"""

from .pipeline import FluidBibleService

__all__ = ["FluidBibleService", "__version__"]

__version__ = "0.1.0"
