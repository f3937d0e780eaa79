import sys

from almanac_remap.cli import main

sys.exit(main())
