"""
Entrypoint for running the CLI as a module.

Usage:
    python -m ciboot_cli [OPTIONS] COMMAND
    ciboot [OPTIONS] COMMAND  (after pip install)
"""

from ciboot_cli.cli import cli

if __name__ == "__main__":
    cli()
