import sys

from yomitan_local.cli import main

sys.exit(main())
