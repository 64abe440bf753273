"""Command line interface modules.

This package provides the command-line tools for:
- Starting the relay with its listen address and credentials
- Showing the host's public addresses

The command modules keep option parsing and console output apart from the
core protocol engine.
"""
