"""Module entrypoint for running fluidbible as ``python -m fluidbible``."""

from __future__ import annotations

from fluidbible.cli import main


if __name__ == "__main__":
    main()
