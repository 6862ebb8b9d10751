"""listing-crawler: paginated listing crawler."""

__version__ = "0.1.0"
