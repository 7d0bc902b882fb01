"""
Package entry point.

Allows running the application via:

    python -m coursematch

This simply forwards execution to coursematch.cli.main().
"""

from coursematch.cli import main

if __name__ == "__main__":
    main()
