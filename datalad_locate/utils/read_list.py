from __future__ import annotations

from pathlib import Path


def read_list(list_file: str | Path | None) -> list[str]:
    """Read one entry per line from `list_file`

    Lines are stripped. Empty lines and lines that start with `#` are
    ignored. Returns an empty list if `list_file` is `None`.
    """
    if list_file is None:
        return []
    entries = []
    for line in Path(list_file).read_text().splitlines():
        entry = line.strip()
        if entry and not entry.startswith('#'):
            entries.append(entry)
    return entries
