"""stackfolio: return-stacked portfolio builder core."""

__version__ = "0.1.0"
