"""
Execution Context - Per-task shell state (current folder, environment, history)

This module provides the state that a shell keeps for the commands it runs:
the current folder used to resolve relative paths, a key/value environment,
and the folder history used by pushd/popd.

Architecture:
    - ExecutionContext: Plain object holding the state for ONE logical task
    - ContextRegistry: Lookup table task → context, created on first access
    - get_context(): Shortcut for the context of the calling thread

Lifetime:
    The registry holds contexts weakly against the task (thread) object, so the
    context of a finished thread goes away together with the thread. A context
    can also be dropped explicitly with ContextRegistry.dispose().

Concurrency:
    The context itself is NOT synchronized. It is meant to be mutated only by
    units running "within" its task. Only the registry table is locked.

Example:
    >>> context = get_context()
    >>> context.current_folder = '/tmp'
    >>> context.set('USER', 'demo')
    >>> context.get('USER')
    'demo'
    >>> context.get('missing', 'default')
    'default'
"""
import logging
import os
import threading
import weakref
from typing import Dict, List, Optional

from .exceptions import StateError


class ExecutionContext:
    """
    State of one logical task.

    Stores the current folder (always an absolute path string), the
    environment variables and the folder history stack.
    """

    def __init__(self, current_folder: Optional[str] = None, env: Optional[Dict[str, str]] = None):
        """
        Initialize context

        Args:
            current_folder: Absolute path; defaults to the process working directory
            env: Initial environment (copied)
        """
        self._current_folder = os.path.abspath(current_folder or os.getcwd())
        self._env: Dict[str, str] = dict(env) if env else {}
        self._history: List[str] = []

    # ========================================================================
    # CURRENT FOLDER
    # ========================================================================

    @property
    def current_folder(self) -> str:
        return self._current_folder

    @current_folder.setter
    def current_folder(self, folder: str) -> None:
        self._current_folder = folder

    def push_folder(self, folder: str) -> None:
        """
        Save the current folder in the history, then move to folder

        Args:
            folder: New current folder (absolute path)
        """
        self._history.append(self._current_folder)
        self._current_folder = folder

    def pop_folder(self) -> str:
        """
        Restore the last folder saved by push_folder()

        Returns:
            The restored folder

        Raises:
            StateError: if the history is empty
        """
        if not self._history:
            raise StateError("Folder history is empty")
        self._current_folder = self._history.pop()
        return self._current_folder

    @property
    def history(self) -> List[str]:
        return list(self._history)

    # ========================================================================
    # ENVIRONMENT
    # ========================================================================

    def set(self, name: str, value: str) -> None:
        """
        Set an environment variable

        Args:
            name: Variable name
            value: Variable value
        """
        self._env[name] = value

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """
        Get an environment variable

        Args:
            name: Variable name
            default: Default value if not found

        Returns:
            Variable value or default
        """
        return self._env.get(name, default)

    def has(self, name: str) -> bool:
        return name in self._env

    def delete(self, name: str) -> None:
        self._env.pop(name, None)

    @property
    def env(self) -> Dict[str, str]:
        return self._env

    @env.setter
    def env(self, env: Dict[str, str]) -> None:
        self._env = dict(env)

    def copy(self) -> 'ExecutionContext':
        """
        Create a copy of this context (for a child task)

        Returns:
            New context with same folder, environment and history
        """
        new_context = ExecutionContext(self._current_folder, self._env)
        new_context._history = list(self._history)
        return new_context

    def __repr__(self) -> str:
        return f"ExecutionContext(folder={self._current_folder!r}, env={self._env})"


class ContextRegistry:
    """
    Process-wide table task → ExecutionContext.

    A task is identified by its threading.Thread object. Entries are weak on
    the thread, so they disappear when the thread object is collected.
    """

    def __init__(self, logger=None):
        self.logger = logger or logging.getLogger('ContextRegistry')
        self._contexts: 'weakref.WeakKeyDictionary[threading.Thread, ExecutionContext]' = weakref.WeakKeyDictionary()
        self._lock = threading.Lock()

    def get(self, task: Optional[threading.Thread] = None) -> ExecutionContext:
        """
        Return the context of task, creating it on first lookup

        Args:
            task: Thread owning the context; defaults to the calling thread

        Returns:
            ExecutionContext for the task
        """
        task = task or threading.current_thread()
        with self._lock:
            context = self._contexts.get(task)
            if context is None:
                context = ExecutionContext()
                self._contexts[task] = context
                self.logger.debug(f"Created context for task {task.name}: {context}")
            return context

    def bind(self, context: ExecutionContext, task: Optional[threading.Thread] = None) -> None:
        """Associate an existing context to task (replacing any previous one)"""
        task = task or threading.current_thread()
        with self._lock:
            self._contexts[task] = context

    def dispose(self, task: Optional[threading.Thread] = None) -> None:
        """Forget the context of task. Next lookup creates a fresh one."""
        task = task or threading.current_thread()
        with self._lock:
            if self._contexts.pop(task, None) is not None:
                self.logger.debug(f"Disposed context for task {task.name}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._contexts)


# Default registry used by ExecutionUnit when no context is given
registry = ContextRegistry()


def get_context(task: Optional[threading.Thread] = None) -> ExecutionContext:
    """Context of task (default: calling thread) from the default registry"""
    return registry.get(task)
