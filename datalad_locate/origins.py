"""Resource origins, enumeration candidates, and resource handles

An origin is one searchable location. The set of origin variants is closed:
`FilesystemOrigin`, `ArchiveOrigin`, and `AggregateRootsOrigin`. Code that
handles origins dispatches over exactly these variants (see
`datalad_locate.enumeration`), a new kind of origin requires a new variant
and a new branch there.
"""

from __future__ import annotations

import contextlib
import enum
import os
import tarfile
import zipfile
from dataclasses import (
    dataclass,
    field,
)
from pathlib import (
    Path,
    PurePosixPath,
)
from typing import (
    IO,
    TYPE_CHECKING,
    Union,
)

from datalad_locate import archive_separator
from datalad_locate.exceptions import OriginOpenError

if TYPE_CHECKING:
    from collections.abc import Generator


zip_suffixes = ('.zip', '.jar', '.war', '.ear')
tar_suffixes = ('.tar', '.tar.gz', '.tgz', '.tar.bz2', '.tbz2', '.tar.xz', '.txz')


class OriginKind(enum.Enum):
    filesystem = 'filesystem'
    archive = 'archive'


class ArchiveType(enum.Enum):
    zip = 'zip'
    tar = 'tar'

    @property
    def scheme(self) -> str:
        return f'{self.value}:'


@dataclass(frozen=True)
class FilesystemOrigin:
    base_path: Path
    # The search root `base_path` was derived from, if any. A missing root
    # is an error, a missing `base_path` below an existing root is not.
    root: Path | None = None


@dataclass(frozen=True)
class ArchiveOrigin:
    container_path: Path
    # Slash-separated prefix of the entries that belong to this origin,
    # e.g. `'lib/'`. An empty prefix selects all entries.
    internal_prefix: str = ''


@dataclass(frozen=True)
class AggregateRootsOrigin:
    root_origins: tuple[ResourceOrigin, ...]


ResourceOrigin = Union[FilesystemOrigin, ArchiveOrigin, AggregateRootsOrigin]


@dataclass(frozen=True)
class CandidateEntry:
    origin_kind: OriginKind
    physical_uri: str
    relative_path: PurePosixPath
    # The file itself, or the archive container for archive entries
    location: Path
    entry_name: str | None = None
    # Set for archive entries, so the container is not inspected again
    archive_kind: ArchiveType | None = None


@dataclass(frozen=True)
class ResourceHandle:
    """An openable resource, identified by its canonical URI

    Two handles are equal if their canonical URIs are equal, regardless of
    the origin that produced them.
    """

    uri: str
    origin_kind: OriginKind = field(compare=False)
    path: Path = field(compare=False)
    entry_name: str | None = field(default=None, compare=False)
    archive_kind: ArchiveType | None = field(default=None, compare=False)

    @property
    def name(self) -> str:
        if self.entry_name is not None:
            return PurePosixPath(self.entry_name).name
        return self.path.name

    @contextlib.contextmanager
    def open(self) -> Generator[IO[bytes], None, None]:
        """Open the resource for binary reading

        The returned context manager releases the underlying file, including
        an archive container, when the context is left.
        """
        if self.entry_name is None:
            with self.path.open('rb') as stream:
                yield stream
            return

        kind = self.archive_kind or archive_type(self.path)
        if kind == ArchiveType.zip:
            with zipfile.ZipFile(self.path) as archive, archive.open(
                self.entry_name
            ) as stream:
                yield stream
            return

        with tarfile.open(self.path) as archive:
            names = archive.getnames()
            # Entry names are normalized, members might start with `./`
            member = (
                self.entry_name
                if self.entry_name in names
                else f'./{self.entry_name}'
            )
            stream = archive.extractfile(member)
            if stream is None:
                msg = f'{self.entry_name!r} in {self.path} is not a regular file'
                raise OriginOpenError(self.path, msg)
            with stream:
                yield stream


def archive_type(path: Path) -> ArchiveType | None:
    """Determine the archive type of `path`, `None` if it is no archive"""
    name = path.name.lower()
    if name.endswith(zip_suffixes):
        return ArchiveType.zip
    if name.endswith(tar_suffixes):
        return ArchiveType.tar
    if not path.is_file():
        return None
    # Sniff the content of files with unusual names
    if zipfile.is_zipfile(path):
        return ArchiveType.zip
    with contextlib.suppress(OSError):
        if tarfile.is_tarfile(path):
            return ArchiveType.tar
    return None


def absolute_path(path: Path) -> Path:
    # Normalize without resolving symlinks
    return Path(os.path.abspath(path))


def file_uri(path: Path, *, canonical: bool = False) -> str:
    resolved = os.path.realpath(path) if canonical else os.path.abspath(path)
    return Path(resolved).as_uri()


def archive_uri(
    container: Path,
    entry_name: str,
    *,
    kind: ArchiveType | None = None,
    canonical: bool = False,
) -> str:
    kind = kind or archive_type(container) or ArchiveType.zip
    return (
        f'{kind.scheme}{file_uri(container, canonical=canonical)}'
        f'{archive_separator}{entry_name}'
    )
