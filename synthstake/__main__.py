import sys

from synthstake.cli import main

sys.exit(main())
