"""
IPDCAL CLI Entry Point

This module allows running IPDCAL as:
    python -m ipdcal [command] [options]
"""

from ipdcal.cli import main

if __name__ == "__main__":
    main()
