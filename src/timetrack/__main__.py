"""Allow ``python -m timetrack``."""

from timetrack import cli

if __name__ == "__main__":
    cli.app()
