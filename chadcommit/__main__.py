import sys

from chadcommit.cli.main import main

sys.exit(main())
