import sys

from psachecker.cli import main

sys.exit(main())
