"""Corpus and persistent-store gateways."""

from .corpus import DEFAULT_CORPUS_PATH, StaticCorpus
from .storage import FileFluidStore, FluidStore, HttpFluidStore

__all__ = [
    "DEFAULT_CORPUS_PATH",
    "FileFluidStore",
    "FluidStore",
    "HttpFluidStore",
    "StaticCorpus",
]
