"""Allow running the package as a module: python -m marinade_valuation"""

import sys

from marinade_valuation.cli import main

if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
