"""Allow ``python -m cf_tunnel``."""

from .cli import main

if __name__ == "__main__":
    main()
