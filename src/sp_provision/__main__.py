import sys

from sp_provision.cli import main

sys.exit(main())
