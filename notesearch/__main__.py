import sys

from notesearch.cli import main

sys.exit(main())
