import sys
from .CLI import main

sys.exit(main())
