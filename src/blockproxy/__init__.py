"""blockproxy - a CONNECT proxy that only reaches one destination."""

__version__ = "0.1.0"
