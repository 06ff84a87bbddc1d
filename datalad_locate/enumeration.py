"""Lazy enumeration of the files that are reachable from an origin"""

from __future__ import annotations

import logging
import os
import tarfile
import zipfile
from contextlib import closing
from pathlib import (
    Path,
    PurePath,
    PurePosixPath,
)
from typing import (
    TYPE_CHECKING,
    Callable,
)

from datalad_next.iter_collections import (
    FileSystemItemType,
    iter_dir,
    iter_tar,
    iter_zip,
)

from datalad_locate.exceptions import (
    EnumerationError,
    OriginOpenError,
)
from datalad_locate.origins import (
    AggregateRootsOrigin,
    ArchiveOrigin,
    ArchiveType,
    CandidateEntry,
    FilesystemOrigin,
    OriginKind,
    ResourceOrigin,
    absolute_path,
    archive_type,
    archive_uri,
    file_uri,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

lgr = logging.getLogger('datalad.locate.enumeration')

# Decides whether a directory, given relative to the origin base, is walked
PruneFunction = Callable[[str], bool]
# Receives failures that should not abort the enumeration
ErrorHandler = Callable[[Path, Exception], None]

archive_errors = (OSError, zipfile.BadZipFile, tarfile.TarError)


def iter_origin(
    origin: ResourceOrigin,
    *,
    prune: PruneFunction | None = None,
    on_error: ErrorHandler | None = None,
) -> Iterator[CandidateEntry]:
    """Yield a candidate for every file that is reachable from `origin`

    Parameters
    ----------
    origin: ResourceOrigin
        The origin that should be enumerated.
    prune: PruneFunction | None
        If given, a directory below a filesystem origin is only walked if
        `prune` returns `True` for its path relative to the origin base.
    on_error: ErrorHandler | None
        If given, directories that cannot be read during the walk are
        reported to `on_error` and skipped. Otherwise an `EnumerationError`
        is raised.

    Returns
    -------
    Iterator[CandidateEntry]
        Candidates are produced while the origin is walked.

    Raises
    ------
    OriginOpenError
        If the root of the origin cannot be opened.
    EnumerationError
        If a part of the origin cannot be read after enumeration started and
        no `on_error` handler is given.
    """
    if isinstance(origin, FilesystemOrigin):
        return _iter_filesystem(origin, prune, on_error)
    if isinstance(origin, ArchiveOrigin):
        return _iter_archive(origin)
    if isinstance(origin, AggregateRootsOrigin):
        return _iter_aggregate(origin, prune, on_error)
    msg = f'unknown origin type: {type(origin).__name__}'
    raise TypeError(msg)


def lookup(origin: ResourceOrigin, relative: str) -> Iterator[CandidateEntry]:
    """Check for the file `relative` in `origin` without walking the origin

    Yields at most one candidate for filesystem and archive origins, and at
    most one candidate per nested origin for aggregate origins.
    """
    if isinstance(origin, FilesystemOrigin):
        return _lookup_filesystem(origin, relative)
    if isinstance(origin, ArchiveOrigin):
        return _lookup_archive(origin, relative)
    if isinstance(origin, AggregateRootsOrigin):
        return (
            candidate
            for nested in origin.root_origins
            for candidate in lookup(nested, relative)
        )
    msg = f'unknown origin type: {type(origin).__name__}'
    raise TypeError(msg)


def check_root(origin: FilesystemOrigin) -> None:
    if origin.root is not None and not origin.root.is_dir():
        msg = f'search root {origin.root} is not a directory'
        raise OriginOpenError(origin.root, msg)


def _iter_aggregate(
    origin: AggregateRootsOrigin,
    prune: PruneFunction | None,
    on_error: ErrorHandler | None,
) -> Iterator[CandidateEntry]:
    for nested in origin.root_origins:
        yield from iter_origin(nested, prune=prune, on_error=on_error)


def _iter_filesystem(
    origin: FilesystemOrigin,
    prune: PruneFunction | None,
    on_error: ErrorHandler | None,
) -> Iterator[CandidateEntry]:
    check_root(origin)
    base = absolute_path(origin.base_path)
    if not base.is_dir():
        lgr.debug('nothing to enumerate in %s, not a directory', base)
        return
    yield from _walk(
        base,
        PurePosixPath(),
        frozenset([os.path.realpath(base)]),
        prune,
        on_error,
    )


def _walk(
    directory: Path,
    relative: PurePosixPath,
    ancestors: frozenset[str],
    prune: PruneFunction | None,
    on_error: ErrorHandler | None,
) -> Iterator[CandidateEntry]:
    try:
        # Sort the entries of each directory to get a stable discovery order
        items = sorted(iter_dir(directory), key=_item_name)
    except OSError as e:
        msg = f'cannot read directory {directory}: {e}'
        if not relative.parts:
            raise OriginOpenError(directory, msg) from e
        error = EnumerationError(directory, msg)
        if on_error is None:
            raise error from e
        on_error(directory, error)
        return

    for item in items:
        name = _item_name(item)
        child = directory / name
        child_relative = relative / name
        item_type = item.type
        if item_type == FileSystemItemType.symlink:
            # Follow symlinks, dangling links are ignored
            if child.is_dir():
                item_type = FileSystemItemType.directory
            elif child.is_file():
                item_type = FileSystemItemType.file
            else:
                lgr.debug('ignoring dangling symlink %s', child)
                continue

        if item_type == FileSystemItemType.directory:
            if prune is not None and not prune(str(child_relative)):
                continue
            real_path = os.path.realpath(child)
            if real_path in ancestors:
                lgr.debug('not following %s, it leads into a cycle', child)
                continue
            yield from _walk(
                child,
                child_relative,
                ancestors | {real_path},
                prune,
                on_error,
            )
        elif item_type == FileSystemItemType.file:
            yield CandidateEntry(
                origin_kind=OriginKind.filesystem,
                physical_uri=file_uri(child),
                relative_path=child_relative,
                location=child,
            )


def _item_name(item) -> str:
    # Only the last component is used, independent of whether the item
    # carries a relative or a full path.
    return PurePath(item.name).name


def _archive_type_or_fail(container: Path) -> ArchiveType:
    kind = archive_type(container) if container.is_file() else None
    if kind is None:
        msg = f'{container} is not a readable archive'
        raise OriginOpenError(container, msg)
    return kind


def _normalize_prefix(prefix: str) -> str:
    prefix = str(PurePosixPath(prefix.lstrip('/')))
    if prefix == '.':
        return ''
    return prefix + '/'


def _normalize_entry_name(name: str | PurePath) -> str:
    # Tar members might start with `./` or `/`
    return str(PurePosixPath(str(name).lstrip('/')))


def _iter_archive(origin: ArchiveOrigin) -> Iterator[CandidateEntry]:
    container = absolute_path(origin.container_path)
    kind = _archive_type_or_fail(container)
    prefix = _normalize_prefix(origin.internal_prefix)
    items = iter_zip(container) if kind == ArchiveType.zip else iter_tar(container)

    started = False
    # `closing` releases the container, even if the consumer stops early
    with closing(items):
        try:
            for item in items:
                started = True
                if item.type not in (
                    FileSystemItemType.file,
                    FileSystemItemType.hardlink,
                ):
                    continue
                entry_name = _normalize_entry_name(item.name)
                if not entry_name.startswith(prefix):
                    continue
                yield CandidateEntry(
                    origin_kind=OriginKind.archive,
                    physical_uri=archive_uri(container, entry_name, kind=kind),
                    relative_path=PurePosixPath(entry_name[len(prefix) :]),
                    location=container,
                    entry_name=entry_name,
                    archive_kind=kind,
                )
        except archive_errors as e:
            if not started:
                msg = f'cannot open archive {container}: {e}'
                raise OriginOpenError(container, msg) from e
            msg = f'cannot read archive {container}: {e}'
            raise EnumerationError(container, msg) from e


def _lookup_filesystem(
    origin: FilesystemOrigin,
    relative: str,
) -> Iterator[CandidateEntry]:
    check_root(origin)
    path = absolute_path(origin.base_path / relative)
    if path.is_file():
        yield CandidateEntry(
            origin_kind=OriginKind.filesystem,
            physical_uri=file_uri(path),
            relative_path=PurePosixPath(relative),
            location=path,
        )


def _lookup_archive(origin: ArchiveOrigin, relative: str) -> Iterator[CandidateEntry]:
    container = absolute_path(origin.container_path)
    kind = _archive_type_or_fail(container)
    entry_name = _normalize_prefix(origin.internal_prefix) + relative.lstrip('/')
    try:
        found = (
            _zip_has_file(container, entry_name)
            if kind == ArchiveType.zip
            else _tar_has_file(container, entry_name)
        )
    except archive_errors as e:
        msg = f'cannot open archive {container}: {e}'
        raise OriginOpenError(container, msg) from e
    if found:
        yield CandidateEntry(
            origin_kind=OriginKind.archive,
            physical_uri=archive_uri(container, entry_name, kind=kind),
            relative_path=PurePosixPath(relative.lstrip('/')),
            location=container,
            entry_name=entry_name,
            archive_kind=kind,
        )


def _zip_has_file(container: Path, entry_name: str) -> bool:
    with zipfile.ZipFile(container) as archive:
        try:
            info = archive.getinfo(entry_name)
        except KeyError:
            return False
        return not info.is_dir()


def _tar_has_file(container: Path, entry_name: str) -> bool:
    with tarfile.open(container) as archive:
        for name in (entry_name, f'./{entry_name}'):
            try:
                member = archive.getmember(name)
            except KeyError:
                continue
            return member.isfile() or member.islnk()
    return False
