"""Allow ``python -m stpl``."""

from stpl.cli import main

if __name__ == "__main__":
    main()
