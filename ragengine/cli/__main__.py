"""Allow ``python -m ragengine.cli`` execution."""

import sys

from ragengine.cli.commands import main

sys.exit(main())
