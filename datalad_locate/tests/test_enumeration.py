from __future__ import annotations

import os
import tarfile
import zipfile
from pathlib import (
    Path,
    PurePosixPath,
)

import pytest
from datalad_next.iter_collections import iter_dir
from datalad_next.tests import skip_if_on_windows

from datalad_locate.exceptions import (
    EnumerationError,
    OriginOpenError,
)
from datalad_locate.origins import (
    AggregateRootsOrigin,
    ArchiveOrigin,
    FilesystemOrigin,
    OriginKind,
)

from ..enumeration import (
    iter_origin,
    lookup,
)

archive_content = {
    'app.cfg': b'top',
    'lib/a.cfg': b'a',
    'lib/sub/b.cfg': b'b',
    'other/c.cfg': b'c',
}


def create_tree(root: Path, files: dict[str, bytes]) -> Path:
    for name, content in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
    return root


def create_zip(path: Path, files: dict[str, bytes]) -> Path:
    with zipfile.ZipFile(path, 'w') as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return path


def create_tar(path: Path, files: dict[str, bytes]) -> Path:
    source = create_tree(path.parent / (path.name + '.content'), files)
    with tarfile.open(path, 'w:gz') as archive:
        for name in files:
            archive.add(source / name, arcname=name)
    return path


def relative_paths(candidates) -> list[str]:
    return sorted(str(candidate.relative_path) for candidate in candidates)


def fail_on_sub(monkeypatch) -> None:
    """Let reading any directory named `sub` fail"""

    def failing_iter_dir(path, *args, **kwargs):
        if Path(path).name == 'sub':
            raise PermissionError(13, 'Permission denied', str(path))
        return iter_dir(path, *args, **kwargs)

    monkeypatch.setattr('datalad_locate.enumeration.iter_dir', failing_iter_dir)


def test_filesystem_enumeration(tmp_path):
    create_tree(tmp_path, archive_content)
    candidates = list(iter_origin(FilesystemOrigin(tmp_path)))
    assert relative_paths(candidates) == sorted(archive_content)
    assert all(c.origin_kind == OriginKind.filesystem for c in candidates)
    assert all(c.physical_uri.startswith('file:///') for c in candidates)


def test_filesystem_pruning(tmp_path):
    create_tree(tmp_path, archive_content)
    walked = []

    def prune(directory: str) -> bool:
        walked.append(directory)
        return directory == 'lib'

    candidates = iter_origin(FilesystemOrigin(tmp_path), prune=prune)
    assert relative_paths(candidates) == ['app.cfg', 'lib/a.cfg']
    # `lib/sub` was offered, but not walked
    assert sorted(walked) == ['lib', 'lib/sub', 'other']


def test_missing_base_path(tmp_path):
    # A missing sub-path of an existing root is not an error
    origin = FilesystemOrigin(tmp_path / 'conf', root=tmp_path)
    assert list(iter_origin(origin)) == []


def test_missing_root(tmp_path):
    missing = tmp_path / 'missing'
    origin = FilesystemOrigin(missing / 'conf', root=missing)
    with pytest.raises(OriginOpenError) as exc_info:
        list(iter_origin(origin))
    assert exc_info.value.location == missing


def test_unreadable_subdirectory(tmp_path, monkeypatch):
    create_tree(tmp_path, {'a/x.cfg': b'x', 'a/sub/y.cfg': b'y', 'b/z.cfg': b'z'})
    fail_on_sub(monkeypatch)

    with pytest.raises(EnumerationError) as exc_info:
        list(iter_origin(FilesystemOrigin(tmp_path)))
    assert exc_info.value.location == tmp_path / 'a' / 'sub'

    errors = []
    candidates = iter_origin(
        FilesystemOrigin(tmp_path),
        on_error=lambda path, error: errors.append((path, error)),
    )
    # The walk continues after the unreadable directory
    assert relative_paths(candidates) == ['a/x.cfg', 'b/z.cfg']
    assert [path for path, _ in errors] == [tmp_path / 'a' / 'sub']
    assert isinstance(errors[0][1], EnumerationError)


@skip_if_on_windows
def test_symlink_cycle(tmp_path):
    create_tree(tmp_path, {'a/x.cfg': b'x'})
    os.symlink(tmp_path / 'a', tmp_path / 'a' / 'loop')
    os.symlink(tmp_path / 'missing', tmp_path / 'dangling')
    candidates = list(iter_origin(FilesystemOrigin(tmp_path)))
    assert relative_paths(candidates) == ['a/x.cfg']


@pytest.mark.parametrize('create_archive', [create_zip, create_tar])
def test_archive_enumeration(tmp_path, create_archive):
    suffix = '.zip' if create_archive is create_zip else '.tar.gz'
    container = create_archive(tmp_path / f'app{suffix}', archive_content)

    candidates = list(iter_origin(ArchiveOrigin(container)))
    assert relative_paths(candidates) == sorted(archive_content)

    candidates = list(iter_origin(ArchiveOrigin(container, 'lib')))
    assert relative_paths(candidates) == ['a.cfg', 'sub/b.cfg']
    assert sorted(c.entry_name for c in candidates) == ['lib/a.cfg', 'lib/sub/b.cfg']
    assert all(c.location == container for c in candidates)


def test_archive_early_stop(tmp_path):
    container = create_zip(tmp_path / 'app.zip', archive_content)
    candidates = iter_origin(ArchiveOrigin(container))
    first = next(candidates)
    assert first.relative_path == PurePosixPath('app.cfg')
    # Closing the iterator releases the container
    candidates.close()


def test_broken_archive(tmp_path):
    container = tmp_path / 'broken.zip'
    container.write_bytes(b'this is not a zip file')
    with pytest.raises(OriginOpenError):
        list(iter_origin(ArchiveOrigin(container)))


def test_aggregate_enumeration(tmp_path):
    first = create_tree(tmp_path / 'first', {'a.cfg': b'a'})
    container = create_zip(tmp_path / 'second.jar', {'b.cfg': b'b'})
    origin = AggregateRootsOrigin((FilesystemOrigin(first), ArchiveOrigin(container)))
    assert [str(c.relative_path) for c in iter_origin(origin)] == ['a.cfg', 'b.cfg']


def test_lookup(tmp_path):
    root = create_tree(tmp_path / 'root', archive_content)
    container = create_zip(tmp_path / 'app.jar', archive_content)

    assert len(list(lookup(FilesystemOrigin(root), 'lib/a.cfg'))) == 1
    assert list(lookup(FilesystemOrigin(root), 'lib')) == []
    assert list(lookup(FilesystemOrigin(root), 'nothing.cfg')) == []

    found = list(lookup(ArchiveOrigin(container, 'lib'), 'sub/b.cfg'))
    assert [c.entry_name for c in found] == ['lib/sub/b.cfg']
    assert list(lookup(ArchiveOrigin(container), 'nothing.cfg')) == []

    origin = AggregateRootsOrigin((FilesystemOrigin(root), ArchiveOrigin(container)))
    assert len(list(lookup(origin, 'app.cfg'))) == 2


def test_unknown_origin():
    with pytest.raises(TypeError, match='unknown origin type'):
        iter_origin('not an origin')
