"""mocksandbox CLI - Command line interface for mocksandbox."""

from mocksandbox.cli.commands import cli
from mocksandbox.cli.output import ProgressOutput


def main() -> None:
    """Main entry point for the mocksandbox CLI."""
    cli()


__all__ = ["main", "cli", "ProgressOutput"]
