#!/usr/bin/env python3
"""
Package entry point for Bookmark Sift.

This allows the package to be executed with: python -m bookmark_sift
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
