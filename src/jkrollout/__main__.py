"""``python -m jkrollout``."""

from jkrollout.cli import app

if __name__ == "__main__":
    app()
