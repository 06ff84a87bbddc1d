"""Glob matching on slash-separated resource paths

Patterns are matched segment by segment. Within a segment, `*` matches any
number of characters, `?` matches exactly one character, and `[...]` /
`[!...]` match one character of (or not of) a set. A segment that consists of
`**` only matches zero or more whole segments. No wildcard ever matches a `/`.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Sequence

__all__ = [
    'could_contain',
    'find_unterminated_bracket',
    'has_wildcard',
    'match_path',
    'match_segment',
    'split_path',
]

wildcard_characters = frozenset('*?[')


def has_wildcard(text: str) -> bool:
    return any(c in wildcard_characters for c in text)


def split_path(path: str) -> list[str]:
    # Leading, trailing, and doubled separators carry no meaning
    return [part for part in str(path).split('/') if part]


def find_unterminated_bracket(text: str) -> int | None:
    """Return the index of the first bracket that does not close a class

    An empty class, i.e. `[]` or `[!]`, is reported as unterminated as well,
    because the closing bracket would be taken as a member of the class.
    """
    index = 0
    while index < len(text):
        if text[index] == '[':
            end = _class_end(text, index)
            if end is None:
                return index
            index = end
        index += 1
    return None


def match_path(path: str, pattern: str) -> bool:
    """Check whether `path` matches the glob `pattern`

    Parameters
    ----------
    path: str
        A slash-separated path, for example `'a/b/c.txt'`.
    pattern: str
        A slash-separated glob pattern, for example `'a/**/*.txt'`.

    Returns
    -------
    bool
        `True` if all segments of `path` are consumed by the segments of
        `pattern`, `False` otherwise.
    """
    return _match_parts(tuple(split_path(path)), tuple(split_path(pattern)))


def could_contain(directory: str, pattern: str) -> bool:
    """Check whether anything below `directory` could match `pattern`

    This is the "directory-of" test: it returns `False` only if no path that
    starts with the segments of `directory` can ever match `pattern`. It is
    used to skip directories, or whole origins, before they are walked.
    """
    directory_parts = split_path(directory)
    pattern_parts = split_path(pattern)
    position = 0
    for part in directory_parts:
        if position >= len(pattern_parts):
            # The pattern is exhausted, deeper paths cannot match
            return False
        current = pattern_parts[position]
        if current == '**':
            return True
        if not match_segment(part, current):
            return False
        position += 1
    # There has to be at least one pattern segment left for the entries
    # below `directory`.
    return position < len(pattern_parts)


def _match_parts(path_parts: Sequence[str], pattern_parts: Sequence[str]) -> bool:
    @lru_cache(maxsize=None)
    def match_from(i: int, j: int) -> bool:
        if j == len(pattern_parts):
            return i == len(path_parts)

        if pattern_parts[j] == '**':
            # Try to consume zero segments first, then one more, and so on.
            if match_from(i, j + 1):
                return True
            return i < len(path_parts) and match_from(i + 1, j)

        if i == len(path_parts):
            return False

        if not match_segment(path_parts[i], pattern_parts[j]):
            return False
        return match_from(i + 1, j + 1)

    return match_from(0, 0)


def match_segment(name: str, pattern: str) -> bool:
    """Match a single path segment against a single pattern segment"""
    n = p = 0
    # Positions to resume from, if the most recent `*` has to consume more
    star_p = star_n = -1
    while n < len(name):
        if p < len(pattern):
            c = pattern[p]
            if c == '*':
                # Collapse runs of `*`, `**` within a segment acts like `*`
                while p < len(pattern) and pattern[p] == '*':
                    p += 1
                star_p, star_n = p, n
                continue
            if c == '?':
                n += 1
                p += 1
                continue
            if c == '[':
                end = _class_end(pattern, p)
                if end is not None:
                    if _class_matches(pattern[p + 1 : end], name[n]):
                        n += 1
                        p = end + 1
                        continue
                elif name[n] == '[':
                    # An unterminated bracket is a literal
                    n += 1
                    p += 1
                    continue
            elif c == name[n]:
                n += 1
                p += 1
                continue
        if star_p >= 0:
            # Backtrack: let the last `*` consume one more character
            star_n += 1
            n = star_n
            p = star_p
            continue
        return False

    while p < len(pattern) and pattern[p] == '*':
        p += 1
    return p == len(pattern)


def _class_end(pattern: str, start: int) -> int | None:
    index = start + 1
    if index < len(pattern) and pattern[index] == '!':
        index += 1
    # The first member of a class may be a literal `]`, but only if the
    # class is not empty otherwise, i.e. `[]]` matches `]`.
    if index < len(pattern) and pattern[index] == ']':
        index += 1
    while index < len(pattern):
        if pattern[index] == ']':
            return index
        index += 1
    return None


def _class_matches(members: str, character: str) -> bool:
    negate = members.startswith('!')
    if negate:
        members = members[1:]
    found = False
    index = 0
    while index < len(members):
        if index + 2 < len(members) and members[index + 1] == '-':
            if members[index] <= character <= members[index + 2]:
                found = True
            index += 3
        else:
            if members[index] == character:
                found = True
            index += 1
    return found != negate
