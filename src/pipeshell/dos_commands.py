"""
DOS Commands - DOS prompt names for the Unix command units
"""
from . import unix_commands
from .execution_unit import ExecutionUnit


def dir(*args: str) -> ExecutionUnit:
    """List directory (ls)"""
    return unix_commands.ls(*args)


def echo(*args: str) -> ExecutionUnit:
    """Print to stdout (echo)"""
    return unix_commands.echo(*args)


def find(text: str, *files: str) -> ExecutionUnit:
    """Find text inside files (grep)"""
    return unix_commands.grep(text, *files)
