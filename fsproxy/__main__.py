import sys

from fsproxy.cli import main

sys.exit(main())
