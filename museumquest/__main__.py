import sys

from museumquest.main import main

sys.exit(main())
