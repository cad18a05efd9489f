"""
Execution Unit - One runnable body of work with bound standard streams

ARCHITECTURE:
    unit = ExecutionUnit(body, args)          # body(unit) does the work
    unit.redirect('out.txt')                  # optional stream rebinding
    a.pipe(b).pipe(c).sh()                    # composition + blocking run
        ↓
    c.start() → b.start() → a.start()         # cascade backward
        ↓
    one thread per unit: run()
        ├─ run_body()  → body(unit)
        ├─ exception?  → logged + written to stderr + recorded in UnitResult
        └─ finally     → flush/close OWNED streams (never sys.stdout)

RESPONSIBILITIES:
- Hold stdin/stdout/stderr bindings and remember which ones it owns
- Lazy, memoized glob expansion of its arguments (expanded_args)
- Lifecycle: start / join / sh / run
- Catch every exception escaping the body exactly once, at run()
- File redirections resolved against the ExecutionContext current folder

NOT RESPONSIBLE FOR:
- Wiring units together (done in composition.py; methods here delegate)
- Glob matching rules (done by GlobExpander)
- Cancellation or timeouts (there are none)

STREAM OWNERSHIP:
A stream is OWNED when the unit created it: a redirection target, a pipe
channel side, or a binding taken over by a composite. Owned streams are
closed when the unit terminates. Streams given by the caller or inherited
from the process (sys.stdin/stdout/stderr) are only flushed.
"""
import io
import itertools
import logging
import sys
import threading
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Union

from .constants import BUFFER_SIZE, DEFAULT_ENCODING
from .exceptions import StateError
from .execution_context import ExecutionContext, get_context, registry
from .glob_expander import GlobExpander, get_absolute_path

# A unit body receives the running unit and signals failure by raising
UnitBody = Callable[['ExecutionUnit'], None]

_unit_counter = itertools.count(1)


@dataclass
class UnitResult:
    """
    Outcome of one unit run.

    success is False when the body raised; error holds the exception.
    """

    name: str
    success: bool = True
    error: Optional[BaseException] = None

    @property
    def failed(self) -> bool:
        return not self.success

    def check(self) -> None:
        """Re-raise the recorded error, if any"""
        if self.error is not None:
            raise self.error

    def __str__(self) -> str:
        if self.success:
            return f"UnitResult[{self.name}: ok]"
        return f"UnitResult[{self.name}: {type(self.error).__name__}: {self.error}]"


class _Binding:
    """A stream plus what the unit must do with it on release"""

    __slots__ = ('stream', 'owned', 'wrapped')

    def __init__(self, stream, owned: bool = False, wrapped: bool = False):
        self.stream = stream
        self.owned = owned          # close on release
        self.wrapped = wrapped      # text wrapper we created around a foreign stream

    def release(self, logger, is_output: bool) -> None:
        stream = self.stream
        try:
            if is_output and not stream.closed:
                stream.flush()
            if self.owned:
                stream.close()
            elif self.wrapped and not stream.closed:
                # Leave the caller's underlying stream open
                stream.detach()
        except (OSError, ValueError) as e:
            logger.debug(f"Error releasing stream {stream!r}: {e}")


class ExecutionUnit:
    """
    Independently runnable body of work.

    The body is any callable taking the unit. Inside the body, use:
    - unit.expanded_args()  → arguments after glob expansion
    - unit.stdin_reader     → line-oriented input (iterate until EOF)
    - unit.println(line) / unit.write_bytes(data) / unit.stdout
    - unit.get_absolute_path(path), unit.context

    Example:
        >>> def hello(unit):
        ...     unit.println('hello ' + ' '.join(unit.expanded_args()))
        >>> ExecutionUnit(hello, ['world'], name='hello').sh()
        hello world
        UnitResult(name='hello', success=True, error=None)
    """

    def __init__(self, body: Optional[UnitBody] = None,
                 args: Union[str, List[str], None] = None,
                 name: Optional[str] = None,
                 context: Optional[ExecutionContext] = None,
                 logger=None):
        """
        Initialize ExecutionUnit

        Args:
            body: Callable doing the work; receives this unit
            args: Raw arguments (a single string is one argument)
            name: Identifier used in diagnostics and as thread name
            context: Shell state; defaults to the creating task's context
            logger: Logger instance
        """
        self.body = body
        if args is None:
            args = []
        elif isinstance(args, str):
            args = [args]
        self.args: List[str] = list(args)
        self.name = name or f"unit-{next(_unit_counter)}"
        self.context = context or get_context()
        self.logger = logger or logging.getLogger('ExecutionUnit')

        self.predecessor: Optional['ExecutionUnit'] = None
        self.successor: Optional['ExecutionUnit'] = None
        self.result: Optional[UnitResult] = None

        self._expanded: Optional[List[str]] = None
        self._thread: Optional[threading.Thread] = None

        # Defaults: the process devices, never closed
        self._stdin = _Binding(getattr(sys.stdin, 'buffer', sys.stdin))
        self._stdin_reader = _Binding(sys.stdin)
        self._stdout = _Binding(sys.stdout)
        self._stderr = _Binding(sys.stderr)

    def __repr__(self) -> str:
        return f"ExecutionUnit({self.name!r}, args={self.args})"

    # ========================================================================
    # STREAMS
    # ========================================================================

    @property
    def stdin(self):
        """Binary input stream"""
        return self._stdin.stream

    @property
    def stdin_reader(self):
        """Text input stream supporting readline() and iteration. Always reads stdin."""
        return self._stdin_reader.stream

    @property
    def stdout(self):
        """Text output stream (binary access through stdout.buffer when available)"""
        return self._stdout.stream

    @property
    def stderr(self):
        return self._stderr.stream

    def set_stdin(self, stream, owned: bool = False) -> None:
        """
        Bind the input. The previous binding is released (closed if owned).

        Args:
            stream: Binary or text readable stream
            owned: Close stream when the unit terminates
        """
        self._stdin_reader.release(self.logger, is_output=False)

        if isinstance(stream, io.TextIOBase):
            self._stdin_reader = _Binding(stream, owned=owned)
            self._stdin = _Binding(getattr(stream, 'buffer', stream))
        else:
            reader = io.TextIOWrapper(stream, encoding=DEFAULT_ENCODING)
            self._stdin_reader = _Binding(reader, owned=owned, wrapped=not owned)
            self._stdin = _Binding(stream)

    def set_stdout(self, stream, owned: bool = False) -> None:
        """
        Bind the output. The previous binding is released (closed if owned).

        Binary streams are wrapped in a line-buffered text stream, so that each
        printed line reaches a pipe channel immediately.
        """
        self._stdout.release(self.logger, is_output=True)
        self._stdout = self._output_binding(stream, owned)

    def set_stderr(self, stream, owned: bool = False) -> None:
        """Bind the error stream. Same rules as set_stdout()."""
        self._stderr.release(self.logger, is_output=True)
        self._stderr = self._output_binding(stream, owned)

    @staticmethod
    def _output_binding(stream, owned: bool) -> _Binding:
        if isinstance(stream, io.TextIOBase):
            return _Binding(stream, owned=owned)
        text = io.TextIOWrapper(stream, encoding=DEFAULT_ENCODING, line_buffering=True)
        return _Binding(text, owned=owned, wrapped=not owned)

    def println(self, line: str = '') -> None:
        """Write one line to stdout"""
        self.stdout.write(f"{line}\n")

    def write_bytes(self, data: bytes) -> None:
        """Write raw bytes to stdout"""
        out = self.stdout
        buffer = getattr(out, 'buffer', None)
        if buffer is None:
            out.write(data.decode(DEFAULT_ENCODING, errors='replace'))
            return
        out.flush()
        buffer.write(data)
        buffer.flush()

    def _release_streams(self) -> None:
        """Flush outputs; close what this unit owns"""
        self._stdout.release(self.logger, is_output=True)
        self._stderr.release(self.logger, is_output=True)
        self._stdin_reader.release(self.logger, is_output=False)

    def _borrow_streams(self, other: 'ExecutionUnit') -> None:
        """Use other's bindings without owning them (composite constituents)"""
        if other is self:
            return
        self._release_streams()
        self._stdin = _Binding(other.stdin)
        self._stdin_reader = _Binding(other.stdin_reader)
        self._stdout = _Binding(other.stdout)
        self._stderr = _Binding(other.stderr)

    def _take_input_from(self, other: 'ExecutionUnit') -> None:
        """Take over other's input binding, including its ownership"""
        self._stdin, self._stdin_reader = other._stdin, other._stdin_reader
        other._stdin = _Binding(other._stdin.stream)
        other._stdin_reader = _Binding(other._stdin_reader.stream)

    def _take_output_from(self, other: 'ExecutionUnit') -> None:
        """Take over other's output and error bindings, including ownership"""
        self._stdout, self._stderr = other._stdout, other._stderr
        other._stdout = _Binding(other._stdout.stream)
        other._stderr = _Binding(other._stderr.stream)

    # ========================================================================
    # REDIRECTIONS
    # ========================================================================

    def redirect(self, file: str) -> 'ExecutionUnit':
        """Redirect output to file (truncate). A second call replaces the first."""
        self.set_stdout(open(self.get_absolute_path(file), 'wb'), owned=True)
        return self

    def append(self, file: str) -> 'ExecutionUnit':
        """Redirect output to file, in append mode"""
        self.set_stdout(open(self.get_absolute_path(file), 'ab'), owned=True)
        return self

    def redirect_from(self, file: str) -> 'ExecutionUnit':
        """Redirect input from an existing file"""
        self.set_stdin(open(self.get_absolute_path(file), 'rb'), owned=True)
        return self

    def redirect_err(self, file: str) -> 'ExecutionUnit':
        """Redirect error stream to file (truncate)"""
        self.set_stderr(open(self.get_absolute_path(file), 'wb'), owned=True)
        return self

    # ========================================================================
    # COMPOSITION (see composition.py)
    # ========================================================================

    def pipe(self, other: 'ExecutionUnit', capacity: int = BUFFER_SIZE) -> 'ExecutionUnit':
        """
        Create a pipeline. The two units run in separate threads.
        Intended use: p1.pipe(p2).pipe(p3).sh()

        Returns:
            other, the new tail of the pipeline
        """
        from .composition import pipe
        return pipe(self, other, capacity=capacity)

    def and_(self, other: 'ExecutionUnit') -> 'ExecutionUnit':
        """Like '&&': other runs only if this unit succeeded. Same thread."""
        from .composition import and_
        return and_(self, other)

    def or_(self, other: 'ExecutionUnit') -> 'ExecutionUnit':
        """Like '||': other runs only if this unit failed. Same thread."""
        from .composition import or_
        return or_(self, other)

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    @property
    def started(self) -> bool:
        return self._thread is not None

    def start(self) -> 'ExecutionUnit':
        """
        Start the unit in a new thread. Starting a unit starts the whole
        pipeline before it first.

        Raises:
            StateError: if the unit was already started
        """
        if self._thread is not None:
            raise StateError(f"Unit {self.name} already started")
        if self.predecessor is not None:
            self.predecessor.start()

        self._thread = threading.Thread(target=self._thread_main, name=self.name)
        self.logger.debug(f"Starting unit {self.name}")
        self._thread.start()
        return self

    def join(self, timeout: Optional[float] = None) -> Optional[UnitResult]:
        """
        Wait for this unit (not its predecessors) to finish

        Returns:
            UnitResult, or None if timeout expired first
        """
        if self._thread is None:
            raise StateError(f"Unit {self.name} not started")
        self._thread.join(timeout)
        if self._thread.is_alive():
            return None
        return self.result

    def sh(self) -> UnitResult:
        """Start the unit, then wait for it to finish. What a shell does at end of line."""
        self.start()
        return self.join()

    def _thread_main(self) -> None:
        registry.bind(self.context)
        self.run()

    def run(self) -> UnitResult:
        """
        Run the body in the calling thread.

        Any exception escaping the body is caught here, reported and recorded;
        it never propagates to other units. Owned streams are released.
        """
        try:
            self.run_body()
        except Exception as e:
            self.logger.error(f"Unhandled exception in unit {self.name}", exc_info=True)
            self._report(e)
            self.result = UnitResult(self.name, success=False, error=e)
        else:
            self.result = UnitResult(self.name)
        finally:
            self._release_streams()
        self.logger.debug(f"Unit finished: {self.result}")
        return self.result

    def run_body(self, streams_from: Optional['ExecutionUnit'] = None) -> None:
        """
        Invoke the body. Exceptions propagate.

        Args:
            streams_from: Run with that unit's stream bindings (composites)
        """
        if streams_from is not None:
            self._borrow_streams(streams_from)
        if self.body is None:
            raise StateError(f"Unit {self.name} has no body")
        self.body(self)

    def _report(self, error: Exception) -> None:
        try:
            self.stderr.write(f"{self.name}: {type(error).__name__}: {error}\n")
            self.stderr.flush()
        except (OSError, ValueError) as e:
            self.logger.debug(f"Cannot report to stderr of {self.name}: {e}")

    # ========================================================================
    # HELPERS FOR BODIES
    # ========================================================================

    @property
    def current_folder(self) -> str:
        return self.context.current_folder

    @current_folder.setter
    def current_folder(self, folder: str) -> None:
        self.context.current_folder = folder

    def expanded_args(self) -> List[str]:
        """
        All arguments, shell-expanded. Computed once.

        Arguments keep their order; the matches of one pattern are sorted.
        A path produced twice is kept at its first position only.
        """
        if self._expanded is None:
            expander = GlobExpander(self.context)
            paths = (path for arg in self.args for path in expander.expand([arg]))
            self._expanded = list(dict.fromkeys(paths))
        return self._expanded

    def get_absolute_path(self, path: str) -> str:
        return get_absolute_path(path, self.context)

    def get_input_streams(self, files: List[str]) -> list:
        """Binary input streams for files, or [stdin] if files is empty"""
        if not files:
            return [self.stdin]
        return [open(self.get_absolute_path(f), 'rb') for f in files]

    def get_readers(self, files: List[str]) -> list:
        """Text readers for files, or [stdin_reader] if files is empty"""
        if not files:
            return [self.stdin_reader]
        return [open(self.get_absolute_path(f), encoding=DEFAULT_ENCODING) for f in files]

    def get_output_streams(self, files: List[str], append: bool = False) -> list:
        """Text output streams for files, or [stdout] if files is empty"""
        if not files:
            return [self.stdout]
        mode = 'a' if append else 'w'
        return [open(self.get_absolute_path(f), mode, encoding=DEFAULT_ENCODING) for f in files]

    def iter_lines(self, files: List[str]) -> Iterator[str]:
        """
        Lines (without trailing newline) of files, or of stdin if files is
        empty. Files opened here are closed here; stdin is left open.
        """
        if not files:
            for line in self.stdin_reader:
                yield line.rstrip('\n')
            return
        for file in files:
            with open(self.get_absolute_path(file), encoding=DEFAULT_ENCODING) as reader:
                for line in reader:
                    yield line.rstrip('\n')

    @staticmethod
    def shift(args: List[str]) -> List[str]:
        """Remove first argument. Modifies the list in place."""
        args.pop(0)
        return args
