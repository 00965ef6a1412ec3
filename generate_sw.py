#!/usr/bin/env python3
"""Generate the precaching service worker for the static site build.

Run from the project root after the bundler has written ./dist/:

    python generate_sw.py

Writes dist/sw.js and prints any warnings followed by a summary line.
"""

import sys
from pathlib import Path

# Add swbuild to path
sys.path.insert(0, str(Path(__file__).parent))

from swbuild.build import main


if __name__ == "__main__":
    main()
