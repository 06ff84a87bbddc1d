"""Search roots for `classpath:` and `classpath*:` locations"""

from __future__ import annotations

import logging
from contextlib import closing
from pathlib import Path
from typing import (
    TYPE_CHECKING,
    Protocol,
)

from datalad_locate.enumeration import iter_origin
from datalad_locate.origins import (
    ArchiveOrigin,
    FilesystemOrigin,
    ResourceOrigin,
    archive_type,
)
from datalad_locate.utils.getconfig import get_search_roots
from datalad_locate.utils.patternpath import PatternPath

if TYPE_CHECKING:
    from collections.abc import Iterable

    from datalad_core.config import ConfigManager

lgr = logging.getLogger('datalad.locate.roots')


class RootProvider(Protocol):
    def get_roots(self, name: str = '') -> tuple[ResourceOrigin, ...]:
        """Get one origin for `name` in every known physical root

        The origins are returned in search order. The returned tuple is a
        snapshot, later changes to the provider do not affect it.
        """
        ...


def origin_for(root: Path, name: str = '') -> ResourceOrigin:
    """Get the origin that represents `name` inside the search root `root`

    Directories are represented by a `FilesystemOrigin`, archive files by an
    `ArchiveOrigin` with `name` as internal prefix.
    """
    relative = str(PatternPath(name.lstrip('/')))
    relative = '' if relative == '.' else relative
    if not root.is_dir() and archive_type(root) is not None:
        return ArchiveOrigin(root, relative)
    return FilesystemOrigin(root / relative, root=root)


def holds(origin: ResourceOrigin) -> bool:
    """Check whether `origin` exists in its search root

    A filesystem origin holds its name if the directory exists, an archive
    origin if at least one entry starts with its prefix. Roots that do not
    hold a name are passed over by `classpath:` lookups.
    """
    if isinstance(origin, FilesystemOrigin):
        return origin.base_path.is_dir()
    with closing(iter_origin(origin)) as candidates:
        return next(candidates, None) is not None


class SearchPath:
    """An immutable, ordered sequence of search roots

    Every root is either a directory or an archive file, e.g. a zip- or
    jar-file. The same physical location can be listed multiple times,
    for example through a symlink, the resulting resources are collapsed
    when the resolver deduplicates them.
    """

    def __init__(self, roots: Iterable[str | Path]):
        self._roots = tuple(Path(root).expanduser().absolute() for root in roots)

    @classmethod
    def from_config(
        cls,
        config_manager: ConfigManager | None = None,
    ) -> SearchPath | None:
        roots = get_search_roots(config_manager)
        if not roots:
            return None
        lgr.debug('search roots from configuration: %s', roots)
        return cls(roots)

    @property
    def roots(self) -> tuple[Path, ...]:
        return self._roots

    def get_roots(self, name: str = '') -> tuple[ResourceOrigin, ...]:
        return tuple(origin_for(root, name) for root in self._roots)

    def __len__(self) -> int:
        return len(self._roots)

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({list(map(str, self._roots))!r})'
