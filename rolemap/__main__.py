import sys

from rolemap.combiner import main

sys.exit(main())
