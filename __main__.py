"""Script entry point for keyprov when run from a source checkout."""
import sys

from keyprov_infra.__main__ import main

sys.exit(main())
