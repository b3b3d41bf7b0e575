"""
GeoStamp CLI entry point.

Usage:
    python -m geostamp.cli assess [PROOF]
    python -m geostamp.cli explain [PROOF]
    python -m geostamp.cli verify-stamp STAMP
    python -m geostamp.cli plugins
    python -m geostamp.cli decode SCHEMA HEX
"""

import sys
from .main import main

if __name__ == "__main__":
    sys.exit(main())
