"""Module entrypoint for running Audiobook Maker as ``python -m audiobookmaker``."""

from __future__ import annotations

from audiobookmaker.cli import main


if __name__ == "__main__":
    main()
