import sys

from pyshadow.app import main

sys.exit(main())
