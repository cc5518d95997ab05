import sys

from interview_prep_docs.cli import main

sys.exit(main())
