"""pub: package publication pipeline."""

__version__ = "0.3.0"
