"""
DocScanner - Python package for turning document photos into PDFs

Detects the sheet in each photo, warps it upright, cleans it up for
legibility, compresses it and assembles the pages into one PDF.
"""

from docscanner.config import APP_VERSION

__version__ = APP_VERSION


def main(argv: list[str] | None = None) -> int:
    """Run the command line interface."""
    from docscanner.cli import main as cli_main

    return cli_main(argv)


__all__ = ["__version__", "main"]
