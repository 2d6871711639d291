"""
Entry point for running dasdimage as ``python -m dasdimage``.
"""
import sys

from dasdimage.cli import main

if __name__ == "__main__":
    sys.exit(main())
