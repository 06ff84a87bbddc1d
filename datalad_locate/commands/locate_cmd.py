from __future__ import annotations

import logging
from pathlib import Path
from typing import (
    TYPE_CHECKING,
    ClassVar,
)

from datalad_core.config import get_manager
from datalad_next.commands import (
    EnsureCommandParameterization,
    Parameter,
    ValidatedInterface,
    build_doc,
    datasetmethod,
    eval_results,
    get_status_dict,
)
from datalad_next.constraints import (
    AnyOf,
    DatasetParameter,
    EnsureBool,
    EnsureDataset,
    EnsureInt,
    EnsureListOf,
    EnsurePath,
    EnsureRange,
    EnsureStr,
)
from datalad_next.datasets import Dataset
from datalad_next.exceptions import CapturedException

from datalad_locate.exceptions import (
    EnumerationError,
    MalformedPatternError,
    OriginOpenError,
)
from datalad_locate.loader import DefaultResourceLoader
from datalad_locate.pattern import parse_location
from datalad_locate.resolver import PatternResolver
from datalad_locate.roots import SearchPath
from datalad_locate.utils.getconfig import (
    get_dataset_config_manager,
    get_jobs,
    get_lenient,
)
from datalad_locate.utils.read_list import read_list

if TYPE_CHECKING:
    from collections.abc import Generator

    from datalad_locate.origins import ResourceHandle

lgr = logging.getLogger('datalad.locate.locate_cmd')


# decoration auto-generates standard help
@build_doc
# all commands must be derived from Interface
class Locate(ValidatedInterface):
    # first docstring line is used a short description in the cmdline help
    # the rest is put in the verbose help and manpage
    """Find the resources that match location patterns

    A location pattern is a path, optionally with a prefix, and optionally
    with glob wildcards. `*` matches any part of a name, `?` matches a single
    character, `[...]` matches one character of a set, and `**` matches any
    number of directories. The following prefixes are supported:

    - `classpath*:NAME`: NAME in every search root,
    - `classpath:NAME`: NAME in the first search root that holds it,
    - `file:URL`: a local file URL,
    - `zip:CONTAINER!/ENTRY`, `jar:...`, `tar:...`: entries of an archive.

    Search roots are directories, or zip-, jar-, and tar-archives. They are
    taken from `--root` and `--root-list`, or, if neither is given, from the
    configuration item `datalad.locate.roots` (a comma-separated list).

    Every matching resource is reported exactly once, even if it is reachable
    through more than one root, or through more than one pattern.
    """

    _validator_ = EnsureCommandParameterization(
        {
            'dataset': EnsureDataset(installed=True),
            'pattern': EnsureListOf(EnsureStr(min_len=1)),
            'pattern_list': EnsurePath(),
            'root': EnsureListOf(AnyOf(EnsurePath(), EnsureStr(min_len=1))),
            'root_list': EnsurePath(),
            'lenient': EnsureBool(),
            'jobs': EnsureInt() & EnsureRange(min=1),
        }
    )

    # parameters of the command, must be exhaustive
    _params_: ClassVar[dict[str, Parameter]] = {
        'dataset': Parameter(
            args=('-d', '--dataset'),
            doc='Dataset to be used as a configuration source and as the base '
            'directory of relative plain patterns. Defaults to the current '
            'directory.',
        ),
        'pattern': Parameter(
            args=('pattern',),
            nargs='*',
            metavar='PATTERN',
            doc='Location pattern, e.g. `classpath*:conf/**/*.cfg` (repeat for '
            'multiple patterns).',
        ),
        'pattern_list': Parameter(
            args=(
                '-P',
                '--pattern-list',
            ),
            doc='Name of a file that contains a list of location patterns. '
            'Format is one pattern per line. Empty lines and lines that start '
            "with '#' are ignored. Line content is stripped before used.",
        ),
        'root': Parameter(
            args=(
                '-r',
                '--root',
            ),
            action='append',
            doc='A search root, i.e. a directory or an archive (repeat for '
            'multiple roots, roots are searched in the given order).',
        ),
        'root_list': Parameter(
            args=(
                '-R',
                '--root-list',
            ),
            doc='Name of a file that contains a list of search roots, one '
            'root per line, in search order. Same format as `--pattern-list`.',
        ),
        'lenient': Parameter(
            args=('--lenient',),
            action='store_true',
            doc='Skip search roots that cannot be read, instead of failing. '
            'Skipped roots are reported as `impossible` results. Only applies '
            'to `classpath*:` patterns with more than one search root.',
        ),
        'jobs': Parameter(
            args=(
                '-J',
                '--jobs',
            ),
            doc='Number of search roots that are searched in parallel.',
        ),
    }

    @staticmethod
    @datasetmethod(name='locate')
    @eval_results
    def __call__(
        pattern: list[str] | None = None,
        dataset: DatasetParameter | None = None,
        pattern_list: Path | None = None,
        root: list[str | Path] | None = None,
        root_list: Path | None = None,
        lenient: bool = False,  # noqa: FBT001, FBT002
        jobs: int | None = None,
    ):
        ds: Dataset = dataset.ds if dataset else Dataset('.')
        # Without a dataset, the current directory might not be a repository
        config_manager = (
            get_dataset_config_manager(ds.pathobj) if dataset else get_manager()
        )

        patterns = [*(pattern or []), *read_list(pattern_list)]
        if not patterns:
            msg = 'No location pattern given, use `PATTERN` or `--pattern-list`'
            raise ValueError(msg)

        roots = [*(root or []), *read_list(root_list)]
        root_provider = (
            SearchPath(roots) if roots else SearchPath.from_config(config_manager)
        )
        resolver = PatternResolver(
            DefaultResourceLoader(ds.pathobj, root_provider),
            root_provider,
            lenient=lenient or get_lenient(config_manager),
            jobs=jobs or get_jobs(config_manager),
        )
        yield from locate(resolver, patterns)


def locate(resolver: PatternResolver, patterns: list[str]) -> Generator:
    """Resolve `patterns` and yield one result per resource

    All patterns are parsed before the first one is resolved. If any pattern
    is malformed, an error result is yielded for every malformed pattern and
    no pattern is resolved.

    Parameters
    ----------
    resolver: PatternResolver
        The resolver that is used for every pattern.
    patterns: list[str]
        The location patterns.

    Returns
    -------
    Generator
        Result records, as created by `get_status_dict`.
    """
    malformed = []
    for pattern in patterns:
        try:
            parse_location(pattern)
        except MalformedPatternError as e:
            malformed.append((pattern, e))
    if malformed:
        for pattern, error in malformed:
            yield get_status_dict(
                action='locate',
                status='error',
                pattern=pattern,
                message=str(error),
                exception=CapturedException(error),
            )
        return

    seen: set[str] = set()
    for pattern in patterns:
        try:
            result = resolver.get_resources(pattern)
        except (OriginOpenError, EnumerationError) as e:
            yield get_status_dict(
                action='locate',
                path=str(e.location),
                status='error',
                pattern=pattern,
                message=str(e),
                exception=CapturedException(e),
            )
            continue

        for skipped in result.skipped:
            yield get_status_dict(
                action='locate',
                path=skipped.location,
                status='impossible',
                pattern=pattern,
                message=f'skipped, resources might be missing: {skipped.message}',
            )

        for handle in result:
            if handle.uri in seen:
                lgr.debug('%s was already reported', handle.uri)
                continue
            seen.add(handle.uri)
            yield _handle_result(pattern, handle)


def _handle_result(pattern: str, handle: ResourceHandle) -> dict:
    result = get_status_dict(
        action='locate',
        path=str(handle.path),
        status='ok',
        pattern=pattern,
        uri=handle.uri,
        origin=handle.origin_kind.value,
    )
    if handle.entry_name is not None:
        result['entry'] = handle.entry_name
    return result
