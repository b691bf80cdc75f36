"""
Main entry point for running the package as a module.

Usage:
    python -m transfer upload --config job.json
    python -m transfer export --dest ./export
"""

import sys
from .cli import main

if __name__ == '__main__':
    sys.exit(main())
