"""Allow ``python -m advisorylock``."""

import sys

from advisorylock.cli import main

if __name__ == "__main__":
    sys.exit(main())
