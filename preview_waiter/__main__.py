import sys

from preview_waiter.action import main

if __name__ == "__main__":
    sys.exit(main())
