"""Allow ``python -m deskrank``."""

from deskrank.cli import main

if __name__ == "__main__":
    main()
