import sys

from pvelink.cli import main

sys.exit(main())
