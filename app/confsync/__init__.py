"""confsync - declarative configuration sync for LXC containers."""

__version__ = "0.4.0"
