"""
Main entry point for the Logos client.

This module allows the application to be run using:
    python -m logos_client
"""

import sys
from logos_client.application import main

if __name__ == "__main__":
    sys.exit(main())
