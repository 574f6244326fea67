"""Manifest resolution.

A manifest maps archive destinations to the files (or generated bytes) that
will be stored there. Rows are resolved in three precedence tiers:

1. literal entries (entry script, interpreter binary, ``VERSION`` marker);
2. user copy rules (``--copy``);
3. runtime library selections (``--lib``).

A later tier overwrites an earlier row with the same destination, so a bundled
runtime file always beats a user-declared copy of the same name. No file
contents are read here; see :mod:`python_distpack.metadata`.
"""

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
import logging
import pathlib

from python_distpack.errors import InvalidRuleError, SourceNotFoundError
from python_distpack.matcher import match, walk_files

RUNTIME_PREFIX: str = "python-runtime"

TIER_LITERAL: str = "literal"
TIER_COPY: str = "copy"
TIER_LIBRARY: str = "library"


@dataclass(frozen=True, slots=True)
class CopyRule:
    """A user-declared inclusion directive.

    :ivar pattern: Glob pattern or literal path.
    :ivar destination: Optional destination override. A literal path when the
        pattern matches one file, a directory prefix when it matches several.
    """

    pattern: str
    destination: str | None = None


@dataclass(frozen=True, slots=True)
class LiteralEntry:
    """A source file copied to a fixed destination.

    :ivar source: Source file path; must exist.
    :ivar destination: Archive path.
    """

    source: pathlib.Path
    destination: str


@dataclass(frozen=True, slots=True)
class SyntheticEntry:
    """Generated content stored without a backing file.

    :ivar destination: Archive path.
    :ivar content: Payload bytes.
    :ivar mode: Permission bits for the archive header.
    """

    destination: str
    content: bytes
    mode: int


@dataclass(frozen=True, slots=True)
class ManifestSource:
    """One resolved manifest row, not yet stat'ed or read.

    :ivar destination: Archive path (unique within a manifest).
    :ivar tier: Precedence tier that produced the row.
    :ivar source: Backing file, or ``None`` for synthetic rows.
    :ivar content: Synthetic payload, or ``None`` for file rows.
    :ivar mode: Synthetic permission bits, or ``None`` for file rows.
    """

    destination: str
    tier: str
    source: pathlib.Path | None = None
    content: bytes | None = None
    mode: int | None = None

    @property
    def is_synthetic(self) -> bool:
        return self.source is None


class Manifest:
    """Ordered, destination-keyed collection of :class:`ManifestSource` rows.

    Iteration follows tier order, then resolution order within a tier. When a
    row replaces an earlier one, the replacement takes its own position in
    the later tier.
    """

    __slots__ = ("_rows",)

    def __init__(self) -> None:
        self._rows: dict[str, ManifestSource] = {}

    def put(self, row: ManifestSource) -> ManifestSource | None:
        """Insert a row, replacing any row with the same destination.

        :param row: Row to insert.
        :returns: The replaced row, if any.
        """

        previous: ManifestSource | None = self._rows.pop(row.destination, None)
        self._rows[row.destination] = row
        return previous

    def get(self, destination: str) -> ManifestSource | None:
        return self._rows.get(destination)

    def destinations(self) -> list[str]:
        return list(self._rows)

    def __iter__(self) -> Iterator[ManifestSource]:
        return iter(list(self._rows.values()))

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, destination: object) -> bool:
        return destination in self._rows


def parse_copy_rule(text: str) -> CopyRule:
    """Parse a ``--copy`` string of the form ``<pattern>[:<destination>]``.

    :param text: Raw rule text.
    :returns: Parsed rule.
    :raises InvalidRuleError: If the pattern or the text after ``:`` is empty.
    """

    if ":" not in text:
        pattern_only: str = text.strip()
        if len(pattern_only) == 0:
            raise InvalidRuleError(f"Malformed `copy` string: {text!r}. Missing a pattern.")
        return CopyRule(pattern=pattern_only)

    pattern, _, destination = text.partition(":")
    pattern = pattern.strip()
    destination = destination.strip()
    if len(pattern) == 0:
        raise InvalidRuleError(f"Malformed `copy` string: {text!r}. Missing a pattern before the `:`.")
    if len(destination) == 0:
        raise InvalidRuleError(f"Malformed `copy` string: {text!r}. Missing a path after the `:`.")
    return CopyRule(pattern=pattern, destination=destination)


def _posix_join(*parts: str) -> str:
    """Join path fragments into a normalized POSIX archive path.

    :param parts: Path fragments (may use the host separator).
    :returns: Joined path without ``.`` segments.
    """

    segments: list[str] = []
    for part in parts:
        for seg in pathlib.PurePath(part).as_posix().split("/"):
            if seg == "" or seg == ".":
                continue
            segments.append(seg)
    return "/".join(segments)


def _archive_path(path: pathlib.Path) -> str:
    """Render a matched file path as an archive destination.

    :param path: Path as produced by the matcher.
    :returns: POSIX-style destination (absolute paths keep their leading ``/``).
    """

    return path.as_posix()


def _resolve_copy_rule(rule: CopyRule, *, strict: bool, logger: logging.Logger) -> list[ManifestSource]:
    """Expand one copy rule into manifest rows.

    :param rule: Rule to expand.
    :param strict: Treat a rule with no matches as fatal.
    :param logger: Logger for progress output.
    :returns: Resolved rows in match order.
    :raises SourceNotFoundError: If ``strict`` and nothing matched.
    """

    matches: list[pathlib.Path] = match(rule.pattern, recursive=True)
    if len(matches) == 0:
        if strict is True:
            raise SourceNotFoundError(rule.pattern, "copy rule matched no files")
        logger.warning(f"python-distpack: copy rule {rule.pattern!r} matched no files; skipping")
        return []

    if len(matches) == 1:
        only: pathlib.Path = matches[0]
        dest: str = rule.destination if rule.destination is not None else _archive_path(only)
        return [ManifestSource(destination=dest, tier=TIER_COPY, source=only)]

    rows: list[ManifestSource] = []
    for p in matches:
        if rule.destination is None:
            dest_many: str = _archive_path(p)
        else:
            dest_many = _posix_join(rule.destination, _archive_path(p))
        rows.append(ManifestSource(destination=dest_many, tier=TIER_COPY, source=p))
    return rows


def _resolve_library(group: str, *, library_root: pathlib.Path) -> list[ManifestSource]:
    """Expand a runtime library group into manifest rows.

    :param group: Group (directory) name under ``library_root``.
    :param library_root: Installed runtime library root.
    :returns: One row per file under the group directory.
    :raises SourceNotFoundError: If the group directory does not exist.
    """

    lib_dir: pathlib.Path = library_root / group
    if lib_dir.is_dir() is False:
        raise SourceNotFoundError(lib_dir, f"runtime library group {group!r} not found")

    rows: list[ManifestSource] = []
    for p in walk_files(lib_dir):
        rel: str = p.relative_to(lib_dir).as_posix()
        dest: str = _posix_join(RUNTIME_PREFIX, "lib", group, rel)
        rows.append(ManifestSource(destination=dest, tier=TIER_LIBRARY, source=p))
    return rows


def build_manifest(
    *,
    literals: Sequence[LiteralEntry | SyntheticEntry],
    copy_rules: Sequence[CopyRule],
    library_selections: Sequence[str],
    library_root: pathlib.Path,
    strict_copy: bool = False,
    logger: logging.Logger | None = None,
) -> Manifest:
    """Resolve literals, copy rules and library selections into a manifest.

    :param literals: Literal and synthetic entries (weakest tier).
    :param copy_rules: Parsed ``--copy`` rules.
    :param library_selections: Runtime library group names (strongest tier).
    :param library_root: Root directory holding the library groups.
    :param strict_copy: Fail when a copy rule matches nothing.
    :param logger: Optional logger for progress output.
    :returns: Resolved manifest.
    :raises SourceNotFoundError: If a literal source or library group is missing.
    """

    if logger is None:
        logger = logging.getLogger("python_distpack")

    literal_rows: list[ManifestSource] = []
    for lit in literals:
        if isinstance(lit, SyntheticEntry):
            literal_rows.append(
                ManifestSource(
                    destination=lit.destination,
                    tier=TIER_LITERAL,
                    content=lit.content,
                    mode=lit.mode,
                )
            )
            continue
        if lit.source.is_file() is False:
            raise SourceNotFoundError(lit.source, f"required for {lit.destination!r}")
        literal_rows.append(ManifestSource(destination=lit.destination, tier=TIER_LITERAL, source=lit.source))

    copy_rows: list[ManifestSource] = []
    for rule in copy_rules:
        copy_rows.extend(_resolve_copy_rule(rule, strict=strict_copy, logger=logger))

    library_rows: list[ManifestSource] = []
    for group in library_selections:
        library_rows.extend(_resolve_library(group, library_root=library_root))

    manifest: Manifest = Manifest()
    _merge(manifest, literal_rows, logger=logger)
    _merge(manifest, copy_rows, logger=logger)
    _merge(manifest, library_rows, logger=logger)

    logger.info(
        f"python-distpack: manifest resolved ({len(manifest)} entries: "
        f"{len(literal_rows)} literal, {len(copy_rows)} copy, {len(library_rows)} library)"
    )
    return manifest


def _merge(manifest: Manifest, rows: Iterable[ManifestSource], *, logger: logging.Logger) -> None:
    """Merge one tier into the manifest; later rows win.

    :param manifest: Manifest to update in place.
    :param rows: Rows of a single tier in resolution order.
    :param logger: Logger for overwrite diagnostics.
    """

    for row in rows:
        replaced: ManifestSource | None = manifest.put(row)
        if replaced is not None and logger.isEnabledFor(logging.DEBUG) is True:
            logger.debug(
                f"python-distpack: {row.destination!r} from {replaced.tier} tier "
                f"replaced by {row.tier} tier ({row.source})"
            )
