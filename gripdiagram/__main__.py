"""Entry point for running GripDiagram as a module: python -m gripdiagram"""

import sys
from .cli import main

if __name__ == "__main__":
    sys.exit(main())
