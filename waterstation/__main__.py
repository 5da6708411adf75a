import sys

from waterstation.cli import main

sys.exit(main())
