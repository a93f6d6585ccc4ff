"""Run the CLI with `python -m package_sync`."""

from .main import main

main()
