"""Per-entry metadata resolution.

Each manifest row is turned into a :class:`ManifestEntry` carrying the size,
permission bits, modification time and full content of its source. Content is
buffered in memory; the archive is assembled in one pass afterwards.
"""

from collections.abc import Iterable
from dataclasses import dataclass
import os
import pathlib
import stat
import time

from python_distpack.errors import SourceUnreadableError
from python_distpack.manifest import ManifestSource


@dataclass(frozen=True, slots=True)
class ManifestEntry:
    """A fully-resolved archive entry.

    :ivar destination: Archive path.
    :ivar source: Backing file, or ``None`` for synthetic entries.
    :ivar size: Payload size in bytes.
    :ivar mode: Permission bits.
    :ivar modified_at_millis: Modification time in milliseconds since the epoch.
    :ivar content: Payload bytes.
    """

    destination: str
    source: pathlib.Path | None
    size: int
    mode: int
    modified_at_millis: int
    content: bytes


def now_millis() -> int:
    return time.time_ns() // 1_000_000


def resolve_entry(source: pathlib.Path, *, destination: str | None = None) -> ManifestEntry:
    """Stat and read a source file in one pass.

    :param source: File to read.
    :param destination: Archive path; defaults to the POSIX form of ``source``.
    :returns: Resolved entry.
    :raises SourceUnreadableError: If the file cannot be opened, stat'ed or read.
    """

    try:
        with open(source, "rb") as f:
            st: os.stat_result = os.fstat(f.fileno())
            content: bytes = f.read()
    except OSError as e:
        raise SourceUnreadableError(source, e.strerror or str(e)) from e

    if len(content) != st.st_size:
        raise SourceUnreadableError(source, f"size changed while reading ({st.st_size} -> {len(content)} bytes)")

    return ManifestEntry(
        destination=destination if destination is not None else source.as_posix(),
        source=source,
        size=st.st_size,
        mode=stat.S_IMODE(st.st_mode),
        modified_at_millis=st.st_mtime_ns // 1_000_000,
        content=content,
    )


def resolve_synthetic(*, destination: str, content: bytes, mode: int, modified_at_millis: int) -> ManifestEntry:
    """Build an entry for generated content without touching the filesystem."""

    return ManifestEntry(
        destination=destination,
        source=None,
        size=len(content),
        mode=mode,
        modified_at_millis=modified_at_millis,
        content=content,
    )


def resolve_manifest(rows: Iterable[ManifestSource], *, now: int | None = None) -> list[ManifestEntry]:
    """Resolve every manifest row, preserving manifest order.

    :param rows: Manifest rows (usually a :class:`~python_distpack.manifest.Manifest`).
    :param now: Modification time for synthetic rows; defaults to the current time.
    :returns: Resolved entries.
    :raises SourceUnreadableError: If any source cannot be read.
    """

    stamp: int = now if now is not None else now_millis()
    entries: list[ManifestEntry] = []
    for row in rows:
        if row.source is None:
            entries.append(
                resolve_synthetic(
                    destination=row.destination,
                    content=row.content if row.content is not None else b"",
                    mode=row.mode if row.mode is not None else 0o644,
                    modified_at_millis=stamp,
                )
            )
            continue
        entries.append(resolve_entry(row.source, destination=row.destination))
    return entries
