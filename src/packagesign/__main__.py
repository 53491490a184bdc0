"""
Entry point for `python -m packagesign`.

Usage:
    python -m packagesign sign dmapp -pl ./packages -o ./signed
    python -m packagesign verify dmprotocol -pl ./signed
    python -m packagesign config show
"""

from .ui.cli import main

main()
