"""Map, filter and match OpenStreetMap elements and report import progress."""

__version__ = "0.1.0"