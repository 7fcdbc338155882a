"""Allow ``python -m zonewatch``."""

from zonewatch.cli import app

if __name__ == "__main__":
    app()
