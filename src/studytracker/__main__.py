"""Main entry point for the studytracker package."""

from studytracker.cli import app


def main():
    """Run the studytracker command line."""
    app()


if __name__ == "__main__":
    main()
