"""Allow ``python -m cssblocks``."""

import sys

from cssblocks.cli import main

if __name__ == "__main__":
    sys.exit(main())
