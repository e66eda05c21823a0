import sys

from service_harness.cli import main

sys.exit(main())
