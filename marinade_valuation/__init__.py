"""mSOL valuation from Marinade state-changing transactions."""

from typing import NoReturn

__version__ = "0.1.0"


def _entry_point() -> NoReturn:
    """Entry point for the msol-valuation script."""
    import sys

    from marinade_valuation.cli import main

    raise SystemExit(main(sys.argv[1:]))
