"""Allow running PoeBridge as ``python -m poebridge``."""

from poebridge.cli.cli import main

if __name__ == "__main__":
    main()
