import sys

from python_distpack.cli import main

sys.exit(main())
