"""Entry point for running lcovmerge directly.

Usage:
    python -m lcovmerge [OPTIONS] INPUT [INPUT...]
"""

import sys

from lcovmerge.cli import main

if __name__ == "__main__":
    sys.exit(main())
