"""Allow running as `python -m tidings`."""

import sys

from .cli import main

sys.exit(main())
