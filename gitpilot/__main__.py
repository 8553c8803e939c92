"""Entry point for running gitpilot as a module."""

from gitpilot.cli import app


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
