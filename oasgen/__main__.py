"""Entry point: python -m oasgen"""

from .cli import main

if __name__ == "__main__":
    main()
