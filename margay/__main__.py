"""Allow running Margay Core as ``python -m margay``."""

from margay.cli.main import cli

if __name__ == "__main__":
    cli()
