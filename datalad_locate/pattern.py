"""Split location strings into prefix, literal root segment, and glob suffix"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import (
    unquote,
    urlparse,
)

from datalad_locate import (
    all_roots_prefix,
    archive_schemes,
    archive_separator,
    file_scheme,
    single_root_prefix,
)
from datalad_locate.exceptions import MalformedPatternError
from datalad_locate.utils.glob import (
    find_unterminated_bracket,
    has_wildcard,
)
from datalad_locate.utils.patternpath import PatternPath

lgr = logging.getLogger('datalad.locate.pattern')


class PrefixKind(enum.Enum):
    plain = 'plain'
    single_root = 'single_root'
    all_roots = 'all_roots'
    explicit_url = 'explicit_url'


@dataclass(frozen=True)
class LocationPattern:
    prefix_kind: PrefixKind
    root_segment: str
    glob_suffix: str
    has_wildcard: bool
    # The recognized prefix, e.g. `'classpath*:'` or `'zip:'`, empty for
    # plain paths.
    scheme: str = ''
    # The local path of the archive container of `zip:`, `jar:`, or `tar:`
    # locations.
    container: Path | None = None

    @property
    def path(self) -> str:
        return self.root_segment + self.glob_suffix

    @property
    def is_archive(self) -> bool:
        return self.container is not None


def parse_location(location: str) -> LocationPattern:
    """Parse a location string into a `LocationPattern`

    The following prefixes are recognized, in this order:

    - `classpath*:`: search every known root,
    - `classpath:`: search the one root that holds the name,
    - `file:`, `zip:`, `jar:`, `tar:`: explicit URLs, archive URLs have the
      form `zip:<container>!/<inner path>`,
    - no prefix: a plain filesystem path.

    Parameters
    ----------
    location: str
        The location string, for example `'classpath*:conf/**/*.cfg'`.

    Returns
    -------
    LocationPattern
        The parsed location. `root_segment + glob_suffix` is the path portion
        of `location`, i.e. `location` without its prefix (and without the
        container part of archive URLs).

    Raises
    ------
    MalformedPatternError
        If the prefix is malformed, if a bracket expression is not
        terminated, or if a `classpath*:` location has wildcards before its
        first path separator.
    """
    if not location:
        raise MalformedPatternError(location, 'empty location')

    container = None
    if location.startswith(all_roots_prefix):
        kind, scheme = PrefixKind.all_roots, all_roots_prefix
        path = location[len(all_roots_prefix) :]
    elif location.startswith(single_root_prefix):
        kind, scheme = PrefixKind.single_root, single_root_prefix
        path = location[len(single_root_prefix) :]
    elif location.startswith(file_scheme):
        kind, scheme = PrefixKind.explicit_url, file_scheme
        path = file_url_to_path(location)
    elif location.startswith(archive_schemes):
        kind = PrefixKind.explicit_url
        scheme = location[: location.index(':') + 1]
        container, path = _split_archive_url(location, scheme)
    else:
        kind, scheme, path = PrefixKind.plain, '', location

    if not path:
        raise MalformedPatternError(location, f'no path after {scheme!r}')

    bracket = find_unterminated_bracket(path)
    if bracket is not None:
        msg = f'unterminated bracket expression at position {bracket}'
        raise MalformedPatternError(location, msg)

    if kind in (PrefixKind.single_root, PrefixKind.all_roots):
        # Names are resolved relative to search roots and must stay inside
        try:
            PatternPath(path.lstrip('/'))
        except ValueError as e:
            raise MalformedPatternError(location, str(e)) from e

    if kind == PrefixKind.all_roots:
        # Wildcards in the first segment are only allowed if it is the last
        first, separator, _ = path.lstrip('/').partition('/')
        if separator and has_wildcard(first):
            msg = 'wildcards are not allowed before the first path separator'
            raise MalformedPatternError(location, msg)

    wildcard = has_wildcard(path)
    if wildcard:
        root_segment, glob_suffix = split_root(path)
    else:
        root_segment, glob_suffix = path, ''

    pattern = LocationPattern(
        prefix_kind=kind,
        root_segment=root_segment,
        glob_suffix=glob_suffix,
        has_wildcard=wildcard,
        scheme=scheme,
        container=container,
    )
    lgr.debug('parse_location: %r -> %r', location, pattern)
    return pattern


def split_root(path: str) -> tuple[str, str]:
    """Split `path` at the last separator before the first wildcard"""
    first_wildcard = min(
        (path.index(c) for c in '*?[' if c in path),
        default=len(path),
    )
    separator = path.rfind('/', 0, first_wildcard)
    return path[: separator + 1], path[separator + 1 :]


def file_url_to_path(url: str) -> str:
    """Convert a `file:` URL into a local path string

    `file:///a/b`, `file://localhost/a/b`, `file:/a/b`, and the relative form
    `file:a/b` are accepted. Percent-escapes are decoded.
    """
    parsed = urlparse(url)
    if parsed.netloc not in ('', 'localhost'):
        msg = f'file URL with remote host {parsed.netloc!r} is not supported'
        raise MalformedPatternError(url, msg)
    # `urlparse` would treat `?` and `#` as query and fragment delimiters,
    # but here they are glob characters.
    remainder = url[len(file_scheme) :]
    if remainder.startswith('//'):
        remainder = remainder[2 + len(parsed.netloc) :]
    return unquote(remainder)


def _split_archive_url(location: str, scheme: str) -> tuple[Path, str]:
    remainder = location[len(scheme) :]
    if archive_separator not in remainder:
        msg = f'archive location must contain {archive_separator!r}'
        raise MalformedPatternError(location, msg)
    container_part, inner = remainder.split(archive_separator, 1)
    if not container_part:
        raise MalformedPatternError(location, 'empty archive container')
    if has_wildcard(container_part):
        msg = 'wildcards are not supported in archive container paths'
        raise MalformedPatternError(location, msg)
    if container_part.startswith(file_scheme):
        container_part = file_url_to_path(container_part)
    return Path(container_part), inner
