"""
Entry point for running Synnia as a module.

Usage:
    python -m synnia run project.json --node NODE_ID
"""

import sys

from synnia.main import main

if __name__ == "__main__":
    sys.exit(main())
