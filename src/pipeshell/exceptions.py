"""
Exception taxonomy for pipeshell

Three kinds of failure can end a unit:
    - UsageError: invalid or missing arguments
    - StateError: lifecycle/state violations (double start, empty history, fan-in)
    - OSError (built-in): missing files, broken streams

All of them are fatal to the issuing unit only. They are caught once at the
unit boundary (ExecutionUnit.run) and recorded in its UnitResult.
"""


class ShellError(Exception):
    """Base class for errors raised by pipeshell itself"""


class UsageError(ShellError, ValueError):
    """Invalid or missing arguments given to a command"""


class StateError(ShellError, RuntimeError):
    """Operation not allowed in the current state"""
