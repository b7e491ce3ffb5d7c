import os
import sys

# Add parent dir to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from iconpipe.cli import rename_main

if __name__ == "__main__":
    sys.exit(rename_main())
