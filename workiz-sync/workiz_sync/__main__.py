import sys

from workiz_sync.main import main

sys.exit(main())
