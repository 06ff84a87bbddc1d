"""Resolve location patterns into sets of resource handles"""

from __future__ import annotations

import concurrent.futures
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import (
    TYPE_CHECKING,
    Callable,
)

from datalad_next.exceptions import CapturedException

from datalad_locate.dedup import Deduplicator
from datalad_locate.enumeration import (
    ErrorHandler,
    iter_origin,
    lookup,
)
from datalad_locate.exceptions import (
    EnumerationError,
    OriginOpenError,
)
from datalad_locate.loader import (
    DefaultResourceLoader,
    SingleResourceLoader,
)
from datalad_locate.origins import (
    AggregateRootsOrigin,
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
from datalad_locate.roots import (
    SearchPath,
    holds,
)
from datalad_locate.utils.getconfig import (
    get_jobs,
    get_lenient,
)
from datalad_locate.utils.glob import (
    could_contain,
    match_path,
)

if TYPE_CHECKING:
    from collections.abc import (
        Iterable,
        Iterator,
    )

    from datalad_core.config import ConfigManager

    from datalad_locate.origins import CandidateEntry
    from datalad_locate.roots import RootProvider

lgr = logging.getLogger('datalad.locate.resolver')

# Produces the matching candidates of one origin
OriginTask = Callable[
    [ResourceOrigin, 'ErrorHandler | None'],
    'Iterable[CandidateEntry]',
]


@dataclass(frozen=True)
class SkippedOrigin:
    """A root, or a part of a root, that was skipped in lenient mode"""

    location: str
    error: Exception

    @property
    def message(self) -> str:
        return str(self.error)


class ResolutionResult:
    """The resources a location pattern resolved to

    The result has set semantics: every physical resource is contained at
    most once. Iteration yields the handles in discovery order. If roots were
    skipped in lenient mode, they are listed in `skipped`, and `complete` is
    `False`, i.e. resources might be missing from the result.
    """

    def __init__(
        self,
        handles: Iterable[ResourceHandle] = (),
        skipped: Iterable[SkippedOrigin] = (),
    ):
        self._handles = tuple(handles)
        self._uris = frozenset(handle.uri for handle in self._handles)
        self.skipped = tuple(skipped)

    @property
    def handles(self) -> tuple[ResourceHandle, ...]:
        return self._handles

    @property
    def uris(self) -> list[str]:
        return [handle.uri for handle in self._handles]

    @property
    def complete(self) -> bool:
        return not self.skipped

    def __iter__(self) -> Iterator[ResourceHandle]:
        return iter(self._handles)

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, ResourceHandle):
            return item.uri in self._uris
        return item in self._uris

    def __repr__(self) -> str:
        return (
            f'{self.__class__.__name__}({len(self._handles)} resources, '
            f'{len(self.skipped)} skipped)'
        )


class PatternResolver:
    """Resolve location patterns into sets of resource handles

    Parameters
    ----------
    loader: SingleResourceLoader | None
        Used to look up locations without wildcards. Defaults to a
        `DefaultResourceLoader` that uses `root_provider`.
    root_provider: RootProvider | None
        Provides the search roots for `classpath:` and `classpath*:`
        locations. Without a root provider, these locations are resolved
        against the base directory of `loader`.
    lenient: bool
        If `True`, failing roots of a `classpath*:` location with more than
        one root are skipped and reported in `ResolutionResult.skipped`.
        If `False` (the default), any failing root aborts the resolution.
    jobs: int
        Number of roots of a `classpath*:` location that are enumerated in
        parallel.
    """

    def __init__(
        self,
        loader: SingleResourceLoader | None = None,
        root_provider: RootProvider | None = None,
        *,
        lenient: bool = False,
        jobs: int = 1,
    ):
        if jobs < 1:
            msg = f'jobs must be at least 1, got {jobs}'
            raise ValueError(msg)
        self.root_provider = root_provider
        self.loader = loader or DefaultResourceLoader(root_provider=root_provider)
        self.lenient = lenient
        self.jobs = jobs

    @classmethod
    def from_config(
        cls,
        base_dir: str | Path | None = None,
        config_manager: ConfigManager | None = None,
    ) -> PatternResolver:
        """Create a resolver from the `datalad.locate.*` configuration"""
        root_provider = SearchPath.from_config(config_manager)
        return cls(
            DefaultResourceLoader(base_dir, root_provider),
            root_provider,
            lenient=get_lenient(config_manager),
            jobs=get_jobs(config_manager),
        )

    def get_resources(self, location_pattern: str) -> ResolutionResult:
        """Resolve `location_pattern` into the resources it designates

        Parameters
        ----------
        location_pattern: str
            A location, optionally with a prefix (`classpath*:`,
            `classpath:`, `file:`, `zip:`, `jar:`, `tar:`) and optionally
            with glob wildcards (`*`, `?`, `[...]`, `**`).

        Returns
        -------
        ResolutionResult
            The deduplicated resources. Empty, if nothing matches.

        Raises
        ------
        MalformedPatternError
            If `location_pattern` cannot be parsed.
        OriginOpenError
            If a required root or archive cannot be opened.
        EnumerationError
            If a required root becomes unreadable during enumeration.
        """
        pattern = parse_location(location_pattern)
        if not pattern.has_wildcard:
            return self._direct_lookup(location_pattern, pattern)
        return self._enumerate_and_match(pattern)

    def _direct_lookup(
        self,
        location: str,
        pattern: LocationPattern,
    ) -> ResolutionResult:
        all_roots = pattern.prefix_kind == PrefixKind.all_roots
        if all_roots and self.root_provider is not None:
            name = pattern.path.lstrip('/')
            return self._resolve(
                AggregateRootsOrigin(self.root_provider.get_roots()),
                lambda origin, _: lookup(origin, name),
            )

        handle = self.loader.get_resource(location)
        return ResolutionResult([] if handle is None else [handle])

    def _enumerate_and_match(self, pattern: LocationPattern) -> ResolutionResult:
        glob_suffix = pattern.glob_suffix

        def prune(directory: str) -> bool:
            return could_contain(directory, glob_suffix)

        def matches(
            origin: ResourceOrigin,
            on_error: ErrorHandler | None,
        ) -> Iterator[CandidateEntry]:
            for candidate in iter_origin(origin, prune=prune, on_error=on_error):
                if match_path(str(candidate.relative_path), glob_suffix):
                    yield candidate

        return self._resolve(self._select_origin(pattern), matches)

    def _select_origin(self, pattern: LocationPattern) -> ResourceOrigin:
        root_segment = pattern.root_segment
        if pattern.container is not None:
            container = self._local_path(pattern.container)
            return ArchiveOrigin(container, root_segment)

        if pattern.prefix_kind in (PrefixKind.single_root, PrefixKind.all_roots):
            name = root_segment.lstrip('/')
            if self.root_provider is None:
                lgr.debug('no root provider, resolving %r in base directory', name)
                return FilesystemOrigin(self.loader.base_dir / name)
            origins = self.root_provider.get_roots(name)
            if pattern.prefix_kind == PrefixKind.all_roots:
                lgr.debug('searching %d roots for %r', len(origins), name)
                return AggregateRootsOrigin(origins)
            for origin in origins:
                if holds(origin):
                    lgr.debug('resolving %r in %s', name, origin)
                    return origin
            # No root holds the name, an empty aggregate yields nothing
            return AggregateRootsOrigin(())

        return FilesystemOrigin(self._local_path(root_segment or '.'))

    def _resolve(self, origin: ResourceOrigin, task: OriginTask) -> ResolutionResult:
        aggregate = isinstance(origin, AggregateRootsOrigin)
        origins = origin.root_origins if aggregate else (origin,)
        # Only a root that is one of several can be skipped, every other
        # root is required.
        tolerant = self.lenient and aggregate and len(origins) > 1

        def run(
            root: ResourceOrigin,
        ) -> tuple[list[CandidateEntry], list[SkippedOrigin]]:
            found: list[CandidateEntry] = []
            skipped: list[SkippedOrigin] = []

            def on_error(path: Path, error: Exception) -> None:
                skipped.append(_skip(str(path), error))

            try:
                found.extend(task(root, on_error if tolerant else None))
            except (OriginOpenError, EnumerationError) as e:
                if not tolerant:
                    raise
                skipped.append(_skip(str(e.location), e))
            return found, skipped

        if self.jobs > 1 and len(origins) > 1:
            # Fan out one task per root, fan in in root order to keep
            # "first seen wins" deterministic.
            with concurrent.futures.ThreadPoolExecutor(
                max_workers=min(self.jobs, len(origins))
            ) as executor:
                outcomes = list(executor.map(run, origins))
        else:
            outcomes = map(run, origins)

        deduplicator = Deduplicator()
        all_skipped: list[SkippedOrigin] = []
        for found, skipped in outcomes:
            for candidate in found:
                deduplicator.add(candidate)
            all_skipped.extend(skipped)
        return ResolutionResult(deduplicator.handles(), all_skipped)

    def _local_path(self, path: str | Path) -> Path:
        path = Path(path).expanduser()
        return path if path.is_absolute() else self.loader.base_dir / path


def _skip(location: str, error: Exception) -> SkippedOrigin:
    ce = CapturedException(error)
    lgr.warning('skipping %s, resources might be missing: %s', location, ce)
    return SkippedOrigin(location, error)
