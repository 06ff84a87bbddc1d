from __future__ import annotations

from pathlib import Path

import pytest
from hypothesis import given
from hypothesis.strategies import (
    sampled_from,
    text,
)

from datalad_locate.exceptions import MalformedPatternError
from datalad_locate.utils.glob import has_wildcard

from ..pattern import (
    PrefixKind,
    parse_location,
    split_root,
)

path_text = text('abc/*?._-', min_size=1)


@pytest.mark.parametrize(
    ('location', 'kind', 'root_segment', 'glob_suffix'),
    [
        ('classpath*:conf/**/*.cfg', PrefixKind.all_roots, 'conf/', '**/*.cfg'),
        ('classpath*:app-*.cfg', PrefixKind.all_roots, '', 'app-*.cfg'),
        ('classpath:conf/app.cfg', PrefixKind.single_root, 'conf/app.cfg', ''),
        ('/data/a/b/*.txt', PrefixKind.plain, '/data/a/b/', '*.txt'),
        ('data/x?/y', PrefixKind.plain, 'data/', 'x?/y'),
        ('file:///data/*.txt', PrefixKind.explicit_url, '/data/', '*.txt'),
        ('zip:/opt/app.jar!/lib/*.cfg', PrefixKind.explicit_url, 'lib/', '*.cfg'),
    ],
)
def test_parse_location(location, kind, root_segment, glob_suffix):
    pattern = parse_location(location)
    assert pattern.prefix_kind == kind
    assert pattern.root_segment == root_segment
    assert pattern.glob_suffix == glob_suffix
    assert pattern.has_wildcard is (glob_suffix != '')


def test_archive_location():
    pattern = parse_location('jar:file:///opt/app.jar!/META-INF/app.cfg')
    assert pattern.scheme == 'jar:'
    assert pattern.is_archive
    assert pattern.container == Path('/opt/app.jar')
    assert pattern.path == 'META-INF/app.cfg'
    assert not pattern.has_wildcard


@given(sampled_from(['', 'classpath:', 'classpath*:']), path_text)
def test_reconstruction(prefix, path):
    if '..' in path.split('/') or (prefix and path.startswith('/')):
        return
    first, separator, _ = path.partition('/')
    if prefix == 'classpath*:' and separator and has_wildcard(first):
        with pytest.raises(MalformedPatternError):
            parse_location(prefix + path)
        return
    pattern = parse_location(prefix + path)
    assert pattern.root_segment + pattern.glob_suffix == path
    assert not any(c in pattern.root_segment for c in '*?[')


@pytest.mark.parametrize(
    'location',
    [
        '',
        'classpath*:',
        'classpath:',
        'conf/[ab.cfg',
        'zip:/opt/app.jar',
        'zip:!/a.cfg',
        'zip:/opt/*.jar!/a.cfg',
        'file://remote/data/a.txt',
        'classpath*:../secrets/*.cfg',
        'classpath*:c*/x.cfg',
        'classpath*:**/*.cfg',
        'classpath*:/[ab]/x.cfg',
    ],
)
def test_malformed_location(location):
    with pytest.raises(MalformedPatternError) as exc_info:
        parse_location(location)
    assert exc_info.value.pattern == location
    # Malformed patterns are value errors as well
    assert isinstance(exc_info.value, ValueError)


def test_split_root():
    assert split_root('a/b/c*/d') == ('a/b/', 'c*/d')
    assert split_root('*.txt') == ('', '*.txt')
    assert split_root('a/[x]/b?') == ('a/', '[x]/b?')


@pytest.mark.parametrize(
    'location',
    [
        'classpath*:app-*.cfg',
        'classpath*:conf/*/x.cfg',
        'classpath*:/conf/**/*.cfg',
        # Only `classpath*:` restricts the first segment
        'classpath:c*/x.cfg',
        'c*/x.cfg',
    ],
)
def test_wildcard_after_first_separator(location):
    assert parse_location(location).has_wildcard
