"""Release-artifact pipeline coordinator."""

__version__ = "0.1.0"
