from __future__ import annotations

import logging
import threading

from datalad_locate.origins import (
    CandidateEntry,
    OriginKind,
    ResourceHandle,
    archive_uri,
    file_uri,
)

lgr = logging.getLogger('datalad.locate.dedup')


def canonical_uri(candidate: CandidateEntry) -> str:
    """Get the de-aliased URI of the resource that `candidate` points to

    Symlinks in the path of a file, or in the path of an archive container,
    are resolved. Two candidates that reach the same physical resource via
    different roots, therefore, have the same canonical URI.
    """
    if candidate.origin_kind == OriginKind.archive:
        return archive_uri(
            candidate.location,
            str(candidate.entry_name),
            kind=candidate.archive_kind,
            canonical=True,
        )
    return file_uri(candidate.location, canonical=True)


def to_handle(candidate: CandidateEntry, uri: str | None = None) -> ResourceHandle:
    return ResourceHandle(
        uri=uri or canonical_uri(candidate),
        origin_kind=candidate.origin_kind,
        path=candidate.location,
        entry_name=candidate.entry_name,
        archive_kind=candidate.archive_kind,
    )


class Deduplicator:
    """Collect resource handles with set semantics

    Handles are keyed by their canonical URI. If a resource is added more
    than once, the first handle wins. Insertion is guarded by a lock, so a
    single instance can be fed from multiple enumeration threads.
    """

    def __init__(self):
        self._handles: dict[str, ResourceHandle] = {}
        self._lock = threading.Lock()

    def add(self, candidate: CandidateEntry) -> bool:
        uri = canonical_uri(candidate)
        with self._lock:
            if uri in self._handles:
                lgr.debug(
                    'ignoring %s, it is the same resource as %s',
                    candidate.physical_uri,
                    uri,
                )
                return False
            self._handles[uri] = to_handle(candidate, uri)
            return True

    def handles(self) -> list[ResourceHandle]:
        with self._lock:
            return list(self._handles.values())

    def __contains__(self, uri: str) -> bool:
        with self._lock:
            return uri in self._handles

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)
