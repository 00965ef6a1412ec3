"""Allow running as `python -m swbuild`."""

from . import main

main()
