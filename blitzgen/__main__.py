"""Entry point for ``python -m blitzgen``."""

import sys

from blitzgen.cli import main

sys.exit(main())
