import sys

from tradebrain.cli import main

sys.exit(main())
