"""Tarball encoding.

Entries are serialized into a POSIX (PAX) tar stream held in memory, then
optionally gzip-compressed as a whole. Output is reproducible: owners are
zeroed and the gzip header carries a fixed timestamp.
"""

from collections.abc import Iterable
import gzip
import io
import logging
import pathlib
import tarfile

from python_distpack.errors import ConfigurationError, EncodingError
from python_distpack.metadata import ManifestEntry


def validate_compresslevel(compresslevel: int) -> None:
    """Validate a gzip compression level.

    :param compresslevel: Compression level (0-9).
    :raises ConfigurationError: If the level is out of range.
    """

    if compresslevel < 0 or compresslevel > 9:
        raise ConfigurationError(f"Invalid compresslevel={compresslevel}; expected 0-9.")


def _tarinfo_for(entry: ManifestEntry) -> tarfile.TarInfo:
    """Build the tar header for an entry.

    :param entry: Resolved entry.
    :returns: Header populated with name, size, mode and mtime.
    """

    info: tarfile.TarInfo = tarfile.TarInfo(name=entry.destination)
    info.type = tarfile.REGTYPE
    info.size = entry.size
    info.mode = entry.mode
    # Sub-second times go into the PAX mtime record.
    if entry.modified_at_millis % 1000 == 0:
        info.mtime = entry.modified_at_millis // 1000
    else:
        info.mtime = entry.modified_at_millis / 1000
    info.uid = 0
    info.gid = 0
    info.uname = ""
    info.gname = ""
    return info


def encode_tar(entries: Iterable[ManifestEntry]) -> bytes:
    """Serialize entries into an uncompressed tar stream.

    :param entries: Resolved entries in archive order.
    :returns: Tar bytes, including the end-of-archive blocks.
    :raises EncodingError: If an entry cannot be encoded.
    """

    buf: io.BytesIO = io.BytesIO()
    try:
        with tarfile.open(fileobj=buf, mode="w", format=tarfile.PAX_FORMAT) as tf:
            for entry in entries:
                if len(entry.content) != entry.size:
                    raise EncodingError(
                        f"Entry {entry.destination!r} declares {entry.size} bytes but carries {len(entry.content)}"
                    )
                tf.addfile(_tarinfo_for(entry), io.BytesIO(entry.content))
    except (tarfile.TarError, ValueError, OverflowError, MemoryError) as e:
        raise EncodingError(f"Failed to encode tarball: {e}") from e
    return buf.getvalue()


def write_archive(
    entries: Iterable[ManifestEntry],
    *,
    compress: bool,
    compresslevel: int = 9,
    logger: logging.Logger | None = None,
) -> bytes:
    """Encode entries into tarball bytes.

    :param entries: Resolved entries in archive order.
    :param compress: Gzip the whole tar stream.
    :param compresslevel: Gzip compression level (0-9).
    :param logger: Optional logger for progress output.
    :returns: Archive bytes.
    :raises ConfigurationError: If ``compresslevel`` is out of range.
    :raises EncodingError: If encoding or compression fails.
    """

    if logger is None:
        logger = logging.getLogger("python_distpack")

    validate_compresslevel(compresslevel)

    logger.info("python-distpack: tar-ing files")
    data: bytes = encode_tar(entries)
    if compress is False:
        return data

    logger.debug(f"python-distpack: gzipping archive ({len(data) / (1024 * 1024):.1f} MiB raw)")
    try:
        return gzip.compress(data, compresslevel=compresslevel, mtime=0)
    except (OverflowError, MemoryError) as e:
        raise EncodingError(f"Failed to gzip tarball: {e}") from e


def write_archive_file(output_path: pathlib.Path, data: bytes) -> None:
    """Write archive bytes to disk without exposing a partial file.

    The bytes go to a sibling ``.tmp`` file that is renamed into place once
    complete; the temporary file is removed if anything fails.

    :param output_path: Final archive path.
    :param data: Archive bytes.
    """

    output_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path: pathlib.Path = output_path.with_name(output_path.name + ".tmp")
    try:
        with open(tmp_path, "wb") as f:
            f.write(data)
        tmp_path.replace(output_path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
