"""Module entrypoint for ``python -m fwatch``."""

from .cli import main


if __name__ == "__main__":
    main()
