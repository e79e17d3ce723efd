import sys

from rusty.main import main

sys.exit(main())
