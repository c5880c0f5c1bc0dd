import sys

from gitwalk.cli import main

sys.exit(main())
