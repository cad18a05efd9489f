"""
Shared fixtures: a resources folder and a fresh context bound to the test thread

resources/
    dir1/file1.txt   (3 lines, 1 containing 'A')
    dir1/file2.txt   (2 lines, 1 containing 'A')
    dir1/file3.pdf
    dir2/file4.txt
    dir3/.hidden/secret.txt
    dir3/visible.txt
"""
import logging
import os
import tempfile

import pytest

from pipeshell import ExecutionContext, registry

logging.basicConfig(
    level=logging.DEBUG,
    format='%(name)s - %(levelname)s - %(message)s'
)


def _write(path: str, content: str) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(content)


@pytest.fixture
def resources():
    """Absolute path of a freshly built resources folder"""
    with tempfile.TemporaryDirectory() as tmp:
        root = os.path.realpath(tmp)
        _write(os.path.join(root, 'dir1', 'file1.txt'), 'Alpha\nbeta\ngamma\n')
        _write(os.path.join(root, 'dir1', 'file2.txt'), 'delta\nALPHA\n')
        _write(os.path.join(root, 'dir1', 'file3.pdf'), '%PDF-1.4\n')
        _write(os.path.join(root, 'dir2', 'file4.txt'), 'epsilon\n')
        _write(os.path.join(root, 'dir3', '.hidden', 'secret.txt'), 'secret\n')
        _write(os.path.join(root, 'dir3', 'visible.txt'), 'visible\n')
        yield root


@pytest.fixture
def context(resources):
    """Context of the test thread, current folder = resources"""
    ctx = ExecutionContext(resources)
    registry.bind(ctx)
    yield ctx
    registry.dispose()
