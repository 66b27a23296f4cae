"""storecache: two-tier cache-aside layer for store configuration."""

__version__ = "0.1.0"
