"""Entry point for `python -m serverconsole`.

Usage:
    python -m serverconsole [options]
"""

from serverconsole.cli import main

if __name__ == "__main__":
    main()
