import sys

from anki_pocket.cli import main

if __name__ == "__main__":
    sys.exit(main())
