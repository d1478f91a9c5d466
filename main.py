#!/usr/bin/env python3
"""
Doc Facade entry point.

Runs the ``docfacade`` command line from a source checkout.
"""

import sys

from docfacade.cli import main


if __name__ == "__main__":
    sys.exit(main())
