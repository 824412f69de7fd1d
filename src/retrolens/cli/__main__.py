"""CLI entry point for retrolens.cli module.

Enables execution via: python -m retrolens.cli PHOTO
"""

from retrolens.cli.generate import main

if __name__ == "__main__":
    raise SystemExit(main())
