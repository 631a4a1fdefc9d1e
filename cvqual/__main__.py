"""Entry point for ``python -m cvqual``."""

from cvqual.main import main

if __name__ == "__main__":
    raise SystemExit(main())
