import sys

from conping.cli import main

sys.exit(main())
