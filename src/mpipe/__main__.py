import sys

from mpipe.cli.app import main

sys.exit(main())
