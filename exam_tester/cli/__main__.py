import sys

from exam_tester.cli import main

sys.exit(main())
