"""
Unix Commands - Ready-made execution units named after common *NIX commands

Every function returns an ExecutionUnit that has NOT been started yet, so it
can be piped, combined, redirected, then run:

    >>> from pipeshell.unix_commands import cat, grep
    >>> cat('*.log').pipe(grep('ERROR')).redirect('errors.txt').sh()

CONVENTIONS:
- Arguments are glob-expanded lazily, against the creating task's context,
  through unit.expanded_args(). cp/cp_r/mv expand their last argument on its
  own, keeping it literally when it names a file that does not exist yet.
- Relative paths are resolved against ExecutionContext.current_folder
- stdin is used when no input file is given (cat, grep, grep_v); the current
  folder when ls gets no argument. File patterns that match nothing raise
  FileNotFoundError rather than falling back to either.
- Errors are raised, never returned as exit codes:
    UsageError  → wrong number/kind of arguments
    StateError  → popd with empty history, false_
    OSError     → missing files, permission problems, network errors

NOT PROVIDED: find, zip, unzip, tar
"""
import logging
import os
import shutil
from typing import List, Optional, Tuple

import requests

from .constants import DOWNLOAD_CHUNK_SIZE, DOWNLOAD_TIMEOUT
from .exceptions import StateError, UsageError
from .execution_unit import ExecutionUnit
from .glob_expander import GlobExpander

logger = logging.getLogger('UnixCommands')


def _expand_files(unit: ExecutionUnit, command: str) -> List[str]:
    """
    Expanded file arguments of unit

    Raises:
        FileNotFoundError: if files were named but every pattern matched
            nothing (instead of falling back to stdin or the current folder)
    """
    files = unit.expanded_args()
    if unit.args and not files:
        raise FileNotFoundError(f"{command}: no match for {' '.join(unit.args)}")
    return files


def _sources_and_dest(unit: ExecutionUnit, command: str) -> Tuple[List[str], str]:
    """
    Split arguments into (expanded sources, absolute destination)

    The destination is the LAST raw argument; it may be a pattern matching
    exactly one path.
    """
    if len(unit.args) < 2:
        raise UsageError(f"{command} requires at least one source and the destination")

    expander = GlobExpander(unit.context, keep_unmatched=True)
    dest = expander.expand([unit.args[-1]])
    if len(dest) != 1:
        raise UsageError(f"{command}: ambiguous destination {unit.args[-1]!r}")
    sources = GlobExpander(unit.context).expand(unit.args[:-1])
    if not sources:
        raise UsageError(f"{command}: no source matches {unit.args[:-1]}")
    return [unit.get_absolute_path(s) for s in sources], unit.get_absolute_path(dest[0])


def _is_new_name(sources: List[str], dest: str) -> bool:
    """
    One source, destination missing, parent of destination is a folder:
    the user means "copy/move under a new name".
    """
    return (len(sources) == 1 and not os.path.exists(dest)
            and os.path.isdir(os.path.dirname(dest)))


def _targets_in_folder(sources: List[str], dest: str) -> List[Tuple[str, str]]:
    if not os.path.isdir(dest):
        raise UsageError(f"{dest} does not exist or is not a folder")
    pairs = []
    for src in sources:
        target = os.path.join(dest, os.path.basename(src))
        if os.path.exists(target):
            raise UsageError(f"{target} already exists")
        pairs.append((src, target))
    return pairs


# ============================================================================
# FOLDERS
# ============================================================================

def pwd() -> ExecutionUnit:
    """Print working directory"""

    def body(unit: ExecutionUnit) -> None:
        unit.println(unit.current_folder)

    return ExecutionUnit(body, name='pwd')


def cd(folder: Optional[str] = None) -> ExecutionUnit:
    """Change directory"""

    def body(unit: ExecutionUnit) -> None:
        args = unit.expanded_args()
        if not args:
            raise UsageError("cd: argument missing")
        target = os.path.normpath(unit.get_absolute_path(args[0]))
        if not os.path.isdir(target):
            raise FileNotFoundError(f"cd: {target}: no such directory")
        unit.current_folder = target

    return ExecutionUnit(body, [folder] if folder else [], name='cd')


def pushd(folder: str) -> ExecutionUnit:
    """Change directory, saving the current one in the context history"""

    def body(unit: ExecutionUnit) -> None:
        target = os.path.normpath(unit.get_absolute_path(folder))
        if not os.path.isdir(target):
            raise FileNotFoundError(f"pushd: {target}: no such directory")
        unit.context.push_folder(target)

    return ExecutionUnit(body, name='pushd')


def popd() -> ExecutionUnit:
    """
    Go back to the directory saved by the last pushd

    Raises (in the unit):
        StateError: if no pushd was called before
    """

    def body(unit: ExecutionUnit) -> None:
        unit.context.pop_folder()

    return ExecutionUnit(body, name='popd')


def ls(*args: str) -> ExecutionUnit:
    """List directory. Hidden files are not printed."""

    def body(unit: ExecutionUnit) -> None:
        paths = _expand_files(unit, 'ls') or ['.']
        for arg in paths:
            path = unit.get_absolute_path(arg)
            if not os.path.exists(path):
                raise FileNotFoundError(f"ls: {arg}: no such file or directory")
            if os.path.isdir(path):
                for name in sorted(os.listdir(path)):
                    if not name.startswith('.'):
                        unit.println(name)
            else:
                unit.println(os.path.basename(path))

    return ExecutionUnit(body, list(args), name='ls')


def mkdir(*folders: str) -> ExecutionUnit:
    """Make directories"""

    def body(unit: ExecutionUnit) -> None:
        for folder in unit.expanded_args():
            os.mkdir(unit.get_absolute_path(folder))

    return ExecutionUnit(body, list(folders), name='mkdir')


def mkdir_p(*folders: str) -> ExecutionUnit:
    """Make directories including all upper levels"""

    def body(unit: ExecutionUnit) -> None:
        for folder in unit.expanded_args():
            os.makedirs(unit.get_absolute_path(folder), exist_ok=True)

    return ExecutionUnit(body, list(folders), name='mkdir_p')


def rmdir(*folders: str) -> ExecutionUnit:
    """
    Remove empty directories. Missing folders are skipped; files and
    non-empty folders are errors.
    """

    def body(unit: ExecutionUnit) -> None:
        for folder in unit.expanded_args():
            path = unit.get_absolute_path(folder)
            if not os.path.exists(path):
                continue
            if not os.path.isdir(path):
                raise UsageError(f"{path} is not a directory")
            if os.listdir(path):
                raise UsageError(f"{path} is not empty")
            os.rmdir(path)

    return ExecutionUnit(body, list(folders), name='rmdir')


# ============================================================================
# FILES
# ============================================================================

def cp(*sources_and_dest: str) -> ExecutionUnit:
    """
    Copy regular files into a destination folder.

    With exactly one source and a missing destination whose parent is a
    folder, the file is copied under the new name.
    """

    def body(unit: ExecutionUnit) -> None:
        sources, dest = _sources_and_dest(unit, 'cp')
        if _is_new_name(sources, dest):
            if os.path.isdir(sources[0]):
                raise UsageError(f"{sources[0]} is a directory")
            shutil.copyfile(sources[0], dest)
            return
        for src, target in _targets_in_folder(sources, dest):
            if os.path.isdir(src):
                raise UsageError(f"{src} is a directory")
            shutil.copyfile(src, target)

    return ExecutionUnit(body, list(sources_and_dest), name='cp')


def cp_r(*sources_and_dest: str) -> ExecutionUnit:
    """Copy files and folders recursively. Same destination rules as cp."""

    def copy(src: str, dest: str) -> None:
        if os.path.isdir(src):
            shutil.copytree(src, dest)
        else:
            shutil.copyfile(src, dest)

    def body(unit: ExecutionUnit) -> None:
        sources, dest = _sources_and_dest(unit, 'cp_r')
        if _is_new_name(sources, dest):
            copy(sources[0], dest)
            return
        for src, target in _targets_in_folder(sources, dest):
            copy(src, target)

    return ExecutionUnit(body, list(sources_and_dest), name='cp_r')


def mv(*sources_and_dest: str) -> ExecutionUnit:
    """
    Move files and folders into a destination folder.

    With exactly one source and a missing destination whose parent is a
    folder, the source is renamed.
    """

    def body(unit: ExecutionUnit) -> None:
        sources, dest = _sources_and_dest(unit, 'mv')
        if _is_new_name(sources, dest):
            shutil.move(sources[0], dest)
            return
        for src, target in _targets_in_folder(sources, dest):
            shutil.move(src, target)

    return ExecutionUnit(body, list(sources_and_dest), name='mv')


def rm(*files: str) -> ExecutionUnit:
    """Remove regular files. Missing files are skipped; folders are errors."""

    def body(unit: ExecutionUnit) -> None:
        for name in unit.expanded_args():
            path = unit.get_absolute_path(name)
            if not os.path.lexists(path):
                continue
            if os.path.isdir(path) and not os.path.islink(path):
                raise UsageError(f"{path} is a directory")
            os.remove(path)

    return ExecutionUnit(body, list(files), name='rm')


def rm_r(*files: str) -> ExecutionUnit:
    """Remove files and folders recursively. Missing files are skipped."""

    def body(unit: ExecutionUnit) -> None:
        for name in unit.expanded_args():
            path = unit.get_absolute_path(name)
            if not os.path.lexists(path):
                continue
            if os.path.isdir(path) and not os.path.islink(path):
                shutil.rmtree(path)
            else:
                os.remove(path)

    return ExecutionUnit(body, list(files), name='rm_r')


def _link(symbolic: bool, name: str, src_and_dest: Tuple[str, ...]) -> ExecutionUnit:

    def body(unit: ExecutionUnit) -> None:
        args = unit.args
        if not args or len(args) > 2:
            raise UsageError(f"{name}: 1 or 2 arguments expected")

        target = unit.get_absolute_path(args[0])
        link = unit.get_absolute_path(args[1] if len(args) == 2 else '.')

        if not os.path.exists(target):
            raise UsageError(f"Target file does not exist: {target}")
        if os.path.lexists(link):
            if os.path.isdir(link):
                link = os.path.join(link, os.path.basename(target))
            else:
                raise UsageError(f"Link file already exists: {link}")

        if symbolic:
            os.symlink(target, link)
        else:
            os.link(target, link)

    return ExecutionUnit(body, list(src_and_dest), name=name)


def ln(*src_and_dest: str) -> ExecutionUnit:
    """
    Create hard link. Without destination the current folder is used. An
    existing folder destination receives a link named after the target.
    """
    return _link(False, 'ln', src_and_dest)


def ln_s(*src_and_dest: str) -> ExecutionUnit:
    """Create symbolic link. Same rules as ln."""
    return _link(True, 'ln_s', src_and_dest)


# ============================================================================
# TEXT
# ============================================================================

def echo(*args: str) -> ExecutionUnit:
    """Print arguments, separated by a blank"""

    def body(unit: ExecutionUnit) -> None:
        unit.println(' '.join(unit.expanded_args()))

    return ExecutionUnit(body, list(args), name='echo')


def cat(*files: str) -> ExecutionUnit:
    """Concatenate files (or stdin) and print to stdout"""

    def body(unit: ExecutionUnit) -> None:
        for line in unit.iter_lines(_expand_files(unit, 'cat')):
            unit.println(line)

    return ExecutionUnit(body, list(files), name='cat')


def grep(text: str, *files: str) -> ExecutionUnit:
    """Print lines containing text"""

    def body(unit: ExecutionUnit) -> None:
        for line in unit.iter_lines(_expand_files(unit, 'grep')):
            if text in line:
                unit.println(line)

    return ExecutionUnit(body, list(files), name='grep')


def grep_v(text: str, *files: str) -> ExecutionUnit:
    """Print lines NOT containing text"""

    def body(unit: ExecutionUnit) -> None:
        for line in unit.iter_lines(_expand_files(unit, 'grep_v')):
            if text not in line:
                unit.println(line)

    return ExecutionUnit(body, list(files), name='grep_v')


def true_() -> ExecutionUnit:
    """Always succeed"""
    return ExecutionUnit(lambda unit: None, name='true')


def false_() -> ExecutionUnit:
    """Always fail"""

    def body(unit: ExecutionUnit) -> None:
        raise StateError("false")

    return ExecutionUnit(body, name='false')


# ============================================================================
# NETWORK
# ============================================================================

def wget(address: str, local_file: Optional[str] = None) -> ExecutionUnit:
    """
    Download address. Output goes to stdout, or to local_file if given.

    HTTP error statuses raise requests.HTTPError inside the unit.
    """

    def body(unit: ExecutionUnit) -> None:
        logger.debug(f"Downloading {address}")
        with requests.get(address, stream=True, timeout=DOWNLOAD_TIMEOUT) as response:
            response.raise_for_status()
            for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                if chunk:
                    unit.write_bytes(chunk)

    unit = ExecutionUnit(body, name='wget')
    if local_file is not None:
        unit.redirect(local_file)
    return unit
