"""Module entrypoint for ``python -m markpager``.

All argument parsing and runtime setup happen in ``markpager.cli``.
"""

from .cli import main


if __name__ == "__main__":
    main()
