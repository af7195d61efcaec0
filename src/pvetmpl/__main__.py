"""Allow running pvetmpl as a module."""

from pvetmpl.cli import main

if __name__ == "__main__":
    main()
