"""Be My Guide: trip planning API over MongoDB."""

__version__ = "1.0.0"
