"""Allow ``python -m varspeed``."""

import sys

from varspeed.cli import main

sys.exit(main())
