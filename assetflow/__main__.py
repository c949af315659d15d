import sys

from assetflow.cli import main

sys.exit(main())
