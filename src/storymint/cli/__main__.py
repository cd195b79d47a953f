"""CLI entry point for storymint.cli module.

Enables execution via: python -m storymint.cli
"""

from storymint.cli.outbox import main

if __name__ == "__main__":
    raise SystemExit(main())
