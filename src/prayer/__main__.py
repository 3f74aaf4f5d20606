"""Allow ``python -m prayer``."""

import sys

from prayer.cli import main

sys.exit(main())
