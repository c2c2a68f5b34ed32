"""
Quote History CLI Entry Point

Enables running the CLI as a module: python -m quotehistory
"""

from .cli import app

if __name__ == "__main__":
    app()
