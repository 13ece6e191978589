"""Allow running as ``python -m teller_simulator``."""

from .cli import main

if __name__ == "__main__":
    main()
