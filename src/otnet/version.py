"""Version information for otnet."""

__version__ = "0.1.0"
