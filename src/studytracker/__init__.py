"""Study tracker backup, restore and cloud sync engine."""

__version__ = "0.1.0"
