"""
Entry point for running the distrobuilder CLI as a module.

Usage: python -m distrobuilder.cli [command] [options]
"""

from .parser import main

if __name__ == "__main__":
    main()
