import sys

from tcpping.cli import main

if __name__ == '__main__':
    sys.exit(main())
