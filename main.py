#!/usr/bin/env python3
"""
Logos Client - Main Entry Point

This module provides the command-line entry point for the Logos voice client.
Configuration comes from the environment (or a .env file) and can be
overridden with command-line flags; run with --help for the list.
"""

import sys

from logos_client.application import main

if __name__ == "__main__":
    sys.exit(main())
