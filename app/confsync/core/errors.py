"""Exception hierarchy shared by the sync pipeline."""


class ConfsyncError(Exception):
    """Base exception for errors that stop a confsync operation."""
