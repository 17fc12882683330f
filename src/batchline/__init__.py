"""Split planning for parallel database extraction and time-partitioned output paths."""

__version__ = "0.1.0"
