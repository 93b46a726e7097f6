#!/usr/bin/env python3
"""
DocScanner - Entry point for python -m docscanner

This module allows the package to be run as a module:
    python -m docscanner scan photo.jpg -o out.pdf
"""

import sys

from docscanner import main

if __name__ == "__main__":
    sys.exit(main())
