"""Allow running pysignin as a module: python -m pysignin."""

import sys

from .cli import main


sys.exit(main())
