"""
Module entry point for: python -m examparse

Allows running the engine directly as a module:
    python -m examparse parse <source> [options]
    python -m examparse classify <source> -o <option> [options]
    python -m examparse route <source> [options]
"""

from .cli import cli


def main():
    cli()


if __name__ == "__main__":
    main()
