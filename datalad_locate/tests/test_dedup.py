from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import PurePosixPath

from datalad_next.tests import skip_if_on_windows

from datalad_locate.enumeration import iter_origin
from datalad_locate.origins import (
    ArchiveOrigin,
    ArchiveType,
    CandidateEntry,
    OriginKind,
    file_uri,
)

from ..dedup import (
    Deduplicator,
    canonical_uri,
    to_handle,
)
from .test_enumeration import create_tar


def file_candidate(path) -> CandidateEntry:
    return CandidateEntry(
        origin_kind=OriginKind.filesystem,
        physical_uri=file_uri(path),
        relative_path=PurePosixPath(path.name),
        location=path,
    )


def test_first_seen_wins(tmp_path):
    path = tmp_path / 'app.cfg'
    path.write_text('app')
    deduplicator = Deduplicator()
    assert deduplicator.add(file_candidate(path)) is True
    assert deduplicator.add(file_candidate(tmp_path / '.' / 'app.cfg')) is False
    assert len(deduplicator) == 1
    assert canonical_uri(file_candidate(path)) in deduplicator


@skip_if_on_windows
def test_symlink_alias(tmp_path):
    (tmp_path / 'real').mkdir()
    path = tmp_path / 'real' / 'app.cfg'
    path.write_text('app')
    os.symlink(tmp_path / 'real', tmp_path / 'alias')

    alias = file_candidate(tmp_path / 'alias' / 'app.cfg')
    assert alias.physical_uri != file_candidate(path).physical_uri
    assert canonical_uri(alias) == canonical_uri(file_candidate(path))

    deduplicator = Deduplicator()
    deduplicator.add(alias)
    deduplicator.add(file_candidate(path))
    handles = deduplicator.handles()
    assert len(handles) == 1
    # The handle of the first candidate is kept
    assert handles[0].path == tmp_path / 'alias' / 'app.cfg'


def test_concurrent_insertion(tmp_path):
    paths = []
    for index in range(20):
        path = tmp_path / f'{index}.cfg'
        path.write_text(str(index))
        paths.append(path)

    deduplicator = Deduplicator()
    with ThreadPoolExecutor(max_workers=4) as executor:
        added = list(
            executor.map(
                lambda path: deduplicator.add(file_candidate(path)),
                paths * 3,
            )
        )
    assert added.count(True) == 20
    assert len(deduplicator) == 20


def test_archive_kind_is_carried(tmp_path, monkeypatch):
    # A name without a known suffix, its type is only found by inspection
    container = create_tar(tmp_path / 'bundle.data', {'conf/app.cfg': b'app'})
    (candidate,) = iter_origin(ArchiveOrigin(container))
    assert candidate.archive_kind == ArchiveType.tar

    inspected = []
    monkeypatch.setattr(
        'datalad_locate.origins.archive_type',
        lambda path: inspected.append(path),
    )
    assert canonical_uri(candidate).startswith('tar:file:///')
    with to_handle(candidate).open() as stream:
        assert stream.read() == b'app'
    assert inspected == []
