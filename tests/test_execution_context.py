"""
Test Suite for ExecutionContext and ContextRegistry
"""
import os
import threading

import pytest

from pipeshell import ContextRegistry, ExecutionContext, StateError


def test_defaults_to_process_folder():
    assert ExecutionContext().current_folder == os.getcwd()


def test_environment():
    context = ExecutionContext('/tmp', env={'A': '1'})
    context.set('B', '2')

    assert context.get('A') == '1'
    assert context.get('B') == '2'
    assert context.get('C') is None
    assert context.get('C', 'default') == 'default'
    assert context.has('A')

    context.delete('A')
    assert not context.has('A')


def test_folder_history():
    context = ExecutionContext('/start')
    context.push_folder('/one')
    context.push_folder('/two')

    assert context.current_folder == '/two'
    assert context.history == ['/start', '/one']
    assert context.pop_folder() == '/one'
    assert context.pop_folder() == '/start'
    with pytest.raises(StateError):
        context.pop_folder()


def test_copy_is_independent():
    context = ExecutionContext('/start', env={'A': '1'})
    clone = context.copy()
    clone.set('A', '2')
    clone.current_folder = '/other'

    assert context.get('A') == '1'
    assert context.current_folder == '/start'


def test_registry_one_context_per_task():
    registry = ContextRegistry()
    main = registry.get()
    assert registry.get() is main

    seen = []
    worker = threading.Thread(target=lambda: seen.append(registry.get()))
    worker.start()
    worker.join()

    assert seen[0] is not main
    assert registry.get(worker) is seen[0]


def test_registry_dispose_and_bind():
    registry = ContextRegistry()
    first = registry.get()
    registry.dispose()
    assert registry.get() is not first

    custom = ExecutionContext('/custom')
    registry.bind(custom)
    assert registry.get() is custom
    assert len(registry) == 1
