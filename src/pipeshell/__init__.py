"""
pipeshell - Compose units of work the way a shell composes commands

Main components:
- ExecutionUnit: Runnable body with bound stdin/stdout/stderr (start / sh)
- pipe / and_ / or_: Pipeline and conditional combinators
- PipeChannel: Bounded, backpressured byte channel used by pipe()
- GlobExpander: Wildcard argument expansion against the current folder
- ExecutionContext: Per-task current folder, environment and folder history
- unix_commands / dos_commands: Ready-made command units (ls, cat, grep, ...)
"""

from .composition import and_, or_, pipe
from .constants import BUFFER_SIZE
from .exceptions import ShellError, StateError, UsageError
from .execution_context import ContextRegistry, ExecutionContext, get_context, registry
from .execution_unit import ExecutionUnit, UnitBody, UnitResult
from .glob_expander import GlobExpander, get_absolute_path, is_absolute, translate_wildcard
from .pipe_channel import PipeChannel

__version__ = "0.1.0"
__all__ = [
    'ExecutionUnit',
    'UnitBody',
    'UnitResult',
    'pipe',
    'and_',
    'or_',
    'PipeChannel',
    'BUFFER_SIZE',
    'GlobExpander',
    'get_absolute_path',
    'is_absolute',
    'translate_wildcard',
    'ExecutionContext',
    'ContextRegistry',
    'get_context',
    'registry',
    'ShellError',
    'UsageError',
    'StateError',
]
