"""
Glob Expander - Wildcard argument expansion against a virtual current folder

ARCHITECTURE:
    expand(["dir/file?.txt", "-v"])
        ↓
    has_wildcard(arg)?
        ├─ NO  → passed through unchanged (no existence check)
        └─ YES → split_root(arg) → [root, seg1, seg2, ...]
                    ↓
                 _match(root, segments)  (explicit work stack)
                    ↓
                 matches? → added to result set
                 none?    → dropped (or kept literally if keep_unmatched)

RESPONSIBILITIES:
- Decide whether a path is absolute (platform separator / drive letter)
- Resolve relative paths against ExecutionContext.current_folder
- Translate '*' and '?' segments into anchored regular expressions
- Walk the filesystem segment by segment and collect existing paths

NOT RESPONSIBLE FOR:
- Quoting/escaping rules of a real shell
- Brace expansion, character classes ([abc]), tilde expansion
- Sorting by any meaningful order (result order is irrelevant)

MATCHING RULES:
- '?' matches exactly one character, '*' matches zero or more characters
- Matching is case-sensitive and never crosses a path separator
- A segment without wildcards is looked up literally, so dotfiles are found too
"""
import logging
import os
import re
from functools import lru_cache
from typing import Iterable, List, Optional, Pattern, Set, Tuple

from .constants import WILDCARD_CHARS
from .exceptions import UsageError
from .execution_context import ExecutionContext, get_context


def has_wildcard(arg: str) -> bool:
    """True if arg contains '*' or '?'"""
    return any(c in arg for c in WILDCARD_CHARS)


@lru_cache(maxsize=256)
def translate_wildcard(segment: str) -> Pattern:
    """
    Translate one path segment into a compiled, fully-anchored regex

    '*' → '.*', '?' → '.', anything else is escaped.

    Args:
        segment: Path segment such as 'file?.txt'

    Returns:
        Compiled pattern, to be used with fullmatch()
    """
    parts = []
    for c in segment:
        if c == '*':
            parts.append('.*')
        elif c == '?':
            parts.append('.')
        else:
            parts.append(re.escape(c))
    return re.compile(''.join(parts), re.DOTALL)


def is_absolute(path: str, sep: str = os.sep) -> bool:
    """
    Return True if path is absolute (i.e. /some/p*ath/ or C:\\so?me\\path)

    Args:
        path: Path, possibly containing wildcards
        sep: Path separator of the platform

    Raises:
        UsageError: if path is None or blank
    """
    if path is None:
        raise UsageError("null path given")
    path = path.strip()
    if not path:
        raise UsageError("empty path given")

    if path.startswith(sep):
        return True
    if sep == '\\':
        # Windows drive letter: C:\...
        return len(path) >= 2 and path[1] == ':'
    return False


def get_absolute_path(path: str, context: ExecutionContext, sep: str = os.sep) -> str:
    """
    Return the absolute path for path, relative to context.current_folder

    Wildcards are kept as they are.
    """
    if is_absolute(path, sep):
        return path
    return context.current_folder.rstrip(sep) + sep + path.strip()


def split_root(path: str, context: ExecutionContext, sep: str = os.sep) -> Tuple[str, List[str]]:
    """
    Split path into (root, segments)

    The root is the filesystem root ('/' or 'C:\\') if path is absolute, the
    current folder if it is relative. Empty segments ('a//b', trailing
    separator) are skipped.

    Returns:
        Tuple (root, [segment, ...])
    """
    pieces = path.strip().split(sep)

    if not is_absolute(path, sep):
        return context.current_folder, [p for p in pieces if p]

    if pieces[0] == '':
        root = sep
    else:
        # Drive letter form: 'C:' → 'C:\'
        root = pieces[0] + sep
    return root, [p for p in pieces[1:] if p]


class GlobExpander:
    """
    Shell-expansion of arguments.

    Every argument is expanded according to the current folder of the bound
    ExecutionContext. Arguments without wildcards are returned as-is.

    Zero-match policy: a wildcard argument matching nothing is DROPPED from
    the result. With keep_unmatched=True the literal argument is kept instead.
    """

    def __init__(self, context: Optional[ExecutionContext] = None,
                 keep_unmatched: bool = False, logger=None):
        """
        Initialize GlobExpander

        Args:
            context: Context providing the current folder (default: calling task's)
            keep_unmatched: Keep literal patterns that match nothing
            logger: Logger instance
        """
        self.context = context or get_context()
        self.keep_unmatched = keep_unmatched
        self.logger = logger or logging.getLogger('GlobExpander')

    def expand(self, paths: Iterable[str]) -> List[str]:
        """
        Expand all arguments

        Args:
            paths: Raw arguments (file names, patterns, options...)

        Returns:
            Deduplicated list of expanded arguments (order is not meaningful)

        Raises:
            UsageError: if paths is None
        """
        if paths is None:
            raise UsageError("null paths given")

        result: Set[str] = set()
        for path in paths:
            if path is None:
                continue

            if not has_wildcard(path):
                # e.g. a fixed filename, empty string, or options
                result.add(path)
                continue

            matches = self.expand_one(path)
            if matches:
                result.update(matches)
            elif self.keep_unmatched:
                result.add(path)
            else:
                self.logger.debug(f"No match for {path!r}, dropped")

        return sorted(result)

    def expand_one(self, path: str) -> Set[str]:
        """
        Expand a single pattern into the set of existing paths it matches
        """
        root, segments = split_root(path, self.context)
        self.logger.debug(f"Expanding {path!r}: root={root!r} segments={segments}")
        return self._match(root, segments)

    def _match(self, root: str, segments: List[str]) -> Set[str]:
        """
        Walk the filesystem from root, consuming one segment per level
        """
        matches: Set[str] = set()
        stack: List[Tuple[str, int]] = [(os.path.normpath(root), 0)]

        while stack:
            current, index = stack.pop()

            if not os.path.exists(current):
                continue

            if index == len(segments) or not os.path.isdir(current):
                matches.add(current)
                continue

            segment = segments[index]
            if not has_wildcard(segment):
                # Direct lookup: sees hidden files too; '.' and '..' collapse here
                child = os.path.normpath(os.path.join(current, segment))
                if os.path.exists(child):
                    stack.append((child, index + 1))
                continue

            pattern = translate_wildcard(segment)
            try:
                names = os.listdir(current)
            except PermissionError:
                self.logger.warning(f"Cannot list {current}, skipped")
                continue
            for name in names:
                if pattern.fullmatch(name):
                    stack.append((os.path.join(current, name), index + 1))

        return matches
