"""
Test Suite for the Unix/DOS command units

Tests:
1. Folder commands (pwd, cd, pushd, popd, ls, mkdir, rmdir)
2. File commands (cp, cp_r, mv, rm, rm_r, ln, ln_s)
3. Text commands in pipelines (echo, cat, grep, grep_v)
4. true_ / false_ with AND / OR
5. wget with a stubbed requests
"""
import io
import os

import pytest
import requests

from pipeshell import StateError, UsageError, dos_commands, unix_commands
from pipeshell.unix_commands import (
    cat, cd, cp, cp_r, echo, false_, grep, grep_v, ln, ln_s, ls, mkdir, mkdir_p,
    mv, popd, pushd, pwd, rm, rm_r, rmdir, true_, wget,
)
from tester_units import TesterUnit, capture


def output_of(unit):
    out = capture(unit)
    result = unit.sh()
    return result, out.getvalue().decode()


# ============================================================================
# FOLDERS
# ============================================================================

def test_pwd(context, resources):
    result, out = output_of(pwd())
    assert result.success
    assert out == resources + '\n'


def test_cd_then_ls(context, resources):
    """cd dir2 && ls file* | tester : ls is expanded after cd ran"""
    ran = []
    tester = TesterUnit(3, ran)
    capture(tester)

    cd('dir2').and_(ls('file*')).pipe(tester).sh()

    assert tester.lines_received == ['file4.txt']
    assert context.current_folder == os.path.join(resources, 'dir2')


def test_cd_errors(context):
    result = cd().sh()
    assert isinstance(result.error, UsageError)

    result = cd('no-such-dir').sh()
    assert isinstance(result.error, FileNotFoundError)


def test_pushd_popd(context, resources):
    pushd('dir1').sh()
    assert context.current_folder == os.path.join(resources, 'dir1')

    popd().sh()
    assert context.current_folder == resources

    result = popd().sh()
    assert isinstance(result.error, StateError)


def test_ls_folder(context):
    result, out = output_of(ls('dir1'))
    assert result.success
    assert out.splitlines() == ['file1.txt', 'file2.txt', 'file3.pdf']


def test_ls_hides_dotfiles(context):
    _, out = output_of(ls('dir3'))
    assert out.splitlines() == ['visible.txt']


def test_ls_file_and_missing(context):
    _, out = output_of(ls('dir1/file1.txt'))
    assert out == 'file1.txt\n'

    result = ls('missing').sh()
    assert isinstance(result.error, FileNotFoundError)


def test_ls_defaults_to_current_folder(context):
    _, out = output_of(ls())
    assert out.splitlines() == ['dir1', 'dir2', 'dir3']


def test_mkdir_rmdir(context, resources):
    assert mkdir('new').sh().success
    assert os.path.isdir(os.path.join(resources, 'new'))
    assert mkdir('new').sh().failed

    assert mkdir_p('deep/er/est').sh().success
    assert os.path.isdir(os.path.join(resources, 'deep', 'er', 'est'))

    assert rmdir('new', 'not-there').sh().success
    assert not os.path.exists(os.path.join(resources, 'new'))

    assert isinstance(rmdir('deep').sh().error, UsageError)
    assert isinstance(rmdir('dir1/file1.txt').sh().error, UsageError)


# ============================================================================
# FILES
# ============================================================================

def test_cp_new_name(context, resources):
    assert cp('dir1/file1.txt', 'copy.txt').sh().success
    with open(os.path.join(resources, 'copy.txt')) as f:
        assert f.read() == 'Alpha\nbeta\ngamma\n'


def test_cp_into_folder(context, resources):
    assert cp('dir1/*.txt', 'dir2').sh().success
    assert sorted(os.listdir(os.path.join(resources, 'dir2'))) == ['file1.txt', 'file2.txt', 'file4.txt']

    result = cp('dir1/file1.txt', 'dir2').sh()
    assert isinstance(result.error, UsageError)


def test_cp_errors(context):
    assert isinstance(cp('only-one').sh().error, UsageError)
    assert isinstance(cp('dir1', 'dir2').sh().error, UsageError)
    assert isinstance(cp('dir1/file1.txt', 'dir1/file2.txt', 'missing-dir').sh().error, UsageError)


def test_cp_r(context, resources):
    assert cp_r('dir1', 'backup').sh().success
    assert sorted(os.listdir(os.path.join(resources, 'backup'))) == ['file1.txt', 'file2.txt', 'file3.pdf']

    assert cp_r('dir2', 'dir3').sh().success
    assert os.path.isfile(os.path.join(resources, 'dir3', 'dir2', 'file4.txt'))


def test_mv(context, resources):
    assert mv('dir2', 'moved').sh().success
    assert os.path.isfile(os.path.join(resources, 'moved', 'file4.txt'))
    assert not os.path.exists(os.path.join(resources, 'dir2'))

    assert mv('dir1/*.pdf', 'moved').sh().success
    assert os.path.isfile(os.path.join(resources, 'moved', 'file3.pdf'))


def test_rm(context, resources):
    assert rm('dir1/*.txt', 'not-there').sh().success
    assert os.listdir(os.path.join(resources, 'dir1')) == ['file3.pdf']

    assert isinstance(rm('dir2').sh().error, UsageError)


def test_rm_r(context, resources):
    assert rm_r('dir*').sh().success
    assert os.listdir(resources) == []


@pytest.mark.skipif(not hasattr(os, 'symlink') or os.name == 'nt', reason="symlinks not available")
def test_ln_s(context, resources):
    assert ln_s('dir1/file1.txt', 'link.txt').sh().success
    link = os.path.join(resources, 'link.txt')
    assert os.path.islink(link)

    assert ln_s('dir2/file4.txt', 'dir3').sh().success
    assert os.path.islink(os.path.join(resources, 'dir3', 'file4.txt'))

    assert isinstance(ln_s('dir1/file2.txt', 'link.txt').sh().error, UsageError)
    assert isinstance(ln_s('missing', 'x').sh().error, UsageError)
    assert isinstance(ln_s().sh().error, UsageError)


def test_ln(context, resources):
    assert ln('dir1/file1.txt', 'hard.txt').sh().success
    assert os.path.samefile(os.path.join(resources, 'hard.txt'),
                            os.path.join(resources, 'dir1', 'file1.txt'))


# ============================================================================
# TEXT
# ============================================================================

def test_echo_keeps_argument_order(context):
    _, out = output_of(echo('b', 'a', 'c'))
    assert out == 'b a c\n'


def test_echo_expands_on_one_line(context):
    ran = []
    tester = TesterUnit(1, ran)
    capture(tester)

    echo('dir1/*').pipe(tester).sh()

    assert len(tester.lines_received) == 1
    assert len(tester.lines_received[0].split(' ')) == 3


def test_cat_grep_pipeline(context):
    ran = []
    p2 = TesterUnit(2, ran)
    p3 = TesterUnit(3, ran)
    capture(p3)

    cat('dir1/file*.txt').pipe(p2).pipe(grep('A')).pipe(p3).sh()

    assert len(p2.lines_received) == 5
    assert p3.lines_received == ['Alpha', 'ALPHA']


def test_grep_v_from_file(context):
    _, out = output_of(grep_v('a', 'dir1/file1.txt'))
    assert out == ''

    _, out = output_of(grep_v('ALPHA', 'dir1/file2.txt'))
    assert out == 'delta\n'


def test_cat_missing_file(context):
    result = cat('nope.txt').sh()
    assert isinstance(result.error, FileNotFoundError)


def test_unmatched_pattern_does_not_read_stdin(context):
    unit = cat('*.nomatch')
    unit.set_stdin(io.BytesIO(b'from stdin\n'))
    result, out = output_of(unit)

    assert isinstance(result.error, FileNotFoundError)
    assert out == ''


def test_unmatched_pattern_does_not_list_current_folder(context):
    result, out = output_of(ls('*.nomatch'))
    assert isinstance(result.error, FileNotFoundError)
    assert out == ''

    result = grep('x', 'dir1/*.doc').sh()
    assert isinstance(result.error, FileNotFoundError)


def test_cat_redirect_from(context, resources):
    unit = cat().redirect_from('dir2/file4.txt').redirect('out.txt')
    assert unit.sh().success
    with open(os.path.join(resources, 'out.txt')) as f:
        assert f.read() == 'epsilon\n'


def test_true_false():
    assert true_().sh().success
    result = false_().sh()
    assert isinstance(result.error, StateError)


def test_false_or_echo(context):
    _, out = output_of(false_().or_(echo('fallback')))
    assert out == 'fallback\n'


def test_true_and_echo(context):
    _, out = output_of(true_().and_(echo('next')))
    assert out == 'next\n'


def test_dos_aliases(context):
    _, out = output_of(dos_commands.dir('dir2'))
    assert out == 'file4.txt\n'

    _, out = output_of(dos_commands.echo('hi'))
    assert out == 'hi\n'

    _, out = output_of(dos_commands.find('eps', 'dir2/file4.txt'))
    assert out == 'epsilon\n'


# ============================================================================
# NETWORK
# ============================================================================

class FakeResponse:

    def __init__(self, chunks, status_code=200):
        self.chunks = chunks
        self.status_code = status_code

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def iter_content(self, chunk_size=1):
        return iter(self.chunks)


def test_wget_to_file(context, resources, monkeypatch):
    calls = []

    def fake_get(url, **kwargs):
        calls.append((url, kwargs))
        return FakeResponse([b'<html>', b'', b'</html>\n'])

    monkeypatch.setattr(unix_commands.requests, 'get', fake_get)

    assert wget('http://example.com', 'output.html').sh().success
    with open(os.path.join(resources, 'output.html'), 'rb') as f:
        assert f.read() == b'<html></html>\n'
    assert calls[0][0] == 'http://example.com'
    assert calls[0][1]['stream'] is True


def test_wget_pipeline(context, monkeypatch):
    monkeypatch.setattr(unix_commands.requests, 'get',
                        lambda url, **kwargs: FakeResponse([b'one\ntw', b'o\nthree\n']))
    ran = []
    tester = TesterUnit(1, ran)
    capture(tester)

    wget('http://example.com').pipe(tester).sh()

    assert tester.lines_received == ['one', 'two', 'three']


def test_wget_http_error(context, monkeypatch):
    monkeypatch.setattr(unix_commands.requests, 'get',
                        lambda url, **kwargs: FakeResponse([], status_code=404))

    result = wget('http://example.com/missing').sh()

    assert isinstance(result.error, requests.HTTPError)
