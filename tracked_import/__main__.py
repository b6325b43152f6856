import sys

from tracked_import.cli import main

sys.exit(main())
