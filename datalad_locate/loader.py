from __future__ import annotations

import logging
from pathlib import Path
from typing import (
    TYPE_CHECKING,
    Protocol,
)

from datalad_locate.dedup import to_handle
from datalad_locate.enumeration import lookup
from datalad_locate.origins import (
    ArchiveOrigin,
    FilesystemOrigin,
    ResourceHandle,
    ResourceOrigin,
)
from datalad_locate.pattern import (
    LocationPattern,
    PrefixKind,
    parse_location,
)
from datalad_locate.roots import holds

if TYPE_CHECKING:
    from collections.abc import Iterator

    from datalad_locate.roots import RootProvider

lgr = logging.getLogger('datalad.locate.loader')


class SingleResourceLoader(Protocol):
    base_dir: Path

    def get_resource(self, location: str) -> ResourceHandle | None:
        """Get the resource at the exact, non-pattern `location`

        Returns `None` if there is no such resource.
        """
        ...


class DefaultResourceLoader:
    """Look up single resources by their exact location

    Relative plain paths are resolved against `base_dir`. `classpath:` and
    `classpath*:` names are resolved in the first root of `root_provider`
    that holds them, or against `base_dir` if no root provider is given.
    """

    def __init__(
        self,
        base_dir: str | Path | None = None,
        root_provider: RootProvider | None = None,
    ):
        self.base_dir = Path(base_dir or Path.cwd()).absolute()
        self.root_provider = root_provider

    def get_resource(self, location: str) -> ResourceHandle | None:
        pattern = parse_location(location)
        for origin, relative in self._lookup_origins(pattern):
            for candidate in lookup(origin, relative):
                lgr.debug('get_resource: %r -> %s', location, candidate.physical_uri)
                return to_handle(candidate)
        lgr.debug('get_resource: %r does not exist', location)
        return None

    def local_path(self, path: str | Path) -> Path:
        path = Path(path).expanduser()
        return path if path.is_absolute() else self.base_dir / path

    def _lookup_origins(
        self,
        pattern: LocationPattern,
    ) -> Iterator[tuple[ResourceOrigin, str]]:
        if pattern.container is not None:
            yield ArchiveOrigin(self.local_path(pattern.container)), pattern.path
            return

        if pattern.prefix_kind in (PrefixKind.single_root, PrefixKind.all_roots):
            name = pattern.path.lstrip('/')
            if self.root_provider is None:
                yield FilesystemOrigin(self.base_dir), name
                return
            for origin in self.root_provider.get_roots():
                # Roots that do not hold the name are passed over
                if holds(origin):
                    yield origin, name
            return

        path = self.local_path(pattern.path)
        yield FilesystemOrigin(path.parent), path.name
