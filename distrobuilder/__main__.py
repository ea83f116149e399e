"""
Entry point for running distrobuilder as a module.

Usage: python -m distrobuilder [command] [options]
"""

from distrobuilder.cli.parser import main

if __name__ == "__main__":
    main()
