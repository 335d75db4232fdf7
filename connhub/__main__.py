"""Allow running the CLI with ``python -m connhub``."""

from .main import app

if __name__ == "__main__":
    app()
