"""
Entry point for running fixloop as a module.

Allows running as: python -m fixloop
"""

from fixloop.cli import cli_main

if __name__ == "__main__":
    cli_main()
