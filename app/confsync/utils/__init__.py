"""Utility functions for confsync."""

from confsync.utils.shell import CommandResult, command_exists, run_command, stream_command

__all__ = ["CommandResult", "command_exists", "run_command", "stream_command"]
