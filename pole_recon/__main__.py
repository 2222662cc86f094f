'''Package entry-point: ``python -m pole_recon``.'''

import sys

from .main import main

if __name__ == "__main__":
    sys.exit(main())
