import sys

from pulsescope.cli import main

sys.exit(main())
