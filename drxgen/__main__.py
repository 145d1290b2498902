# File: drxgen/__main__.py
"""
drxgen — Module entry point.

Allows running the generator directly via::

    python -m drxgen --snapshot snapshot.yaml --output ./generated

Delegates to ``drxgen.cli.cli_main``.
"""

from __future__ import annotations


def main() -> None:
    """Delegate to the CLI main function."""
    from drxgen.cli import cli_main
    cli_main()


if __name__ == "__main__":
    main()
