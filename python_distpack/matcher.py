"""Glob resolution helpers.

Patterns are resolved with :func:`glob.glob`:

- ``*`` matches any characters within one path segment, dotfiles included,
  so ``conf/*`` and ``conf`` select the same files.
- ``**`` spans directory boundaries.
- A pattern that names (or matches) a directory is expanded into every
  regular file beneath it when ``recursive`` is enabled.

Relative patterns yield relative paths. Results are :class:`pathlib.Path`
objects, so a leading ``./`` is dropped (``./README.md`` becomes ``README.md``).
"""

from collections.abc import Iterator
import glob
import os
import pathlib


def match(pattern: str, *, recursive: bool = True) -> list[pathlib.Path]:
    """Resolve a glob pattern into an ordered list of regular files.

    :param pattern: Glob pattern or literal path.
    :param recursive: Enable ``**`` and expand matched directories.
    :returns: Matched files, each present exactly once. Empty if nothing matched.
    """

    files: list[pathlib.Path] = []
    seen: set[pathlib.Path] = set()

    for hit_str in sorted(glob.glob(pattern, recursive=recursive, include_hidden=True)):
        hit: pathlib.Path = pathlib.Path(hit_str)
        candidates: list[pathlib.Path]
        if hit.is_file() is True:
            candidates = [hit]
        elif hit.is_dir() is True and recursive is True:
            candidates = list(walk_files(hit))
        else:
            continue

        for p in candidates:
            if p in seen:
                continue
            seen.add(p)
            files.append(p)

    return files


def walk_files(root: pathlib.Path) -> Iterator[pathlib.Path]:
    """Yield every regular file under a directory in sorted walk order.

    :param root: Directory to walk.
    :returns: Iterator of file paths, each prefixed with ``root``.
    """

    for root_str, dirs, files in os.walk(root, topdown=True):
        dirs.sort()
        root_path: pathlib.Path = pathlib.Path(root_str)
        for name in sorted(files):
            p: pathlib.Path = root_path / name
            if p.is_file() is True:
                yield p
