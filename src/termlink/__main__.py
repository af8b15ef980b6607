"""
Main entry point for running termlink as a module.

Usage:
    python -m termlink serve --port 4000 --password secret
    python -m termlink init
    python -m termlink info
"""

from .cli import cli

if __name__ == "__main__":
    cli()
