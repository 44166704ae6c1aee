"""Run the command-line client: python -m kite_client."""

import sys

from .cli import main


sys.exit(main())
