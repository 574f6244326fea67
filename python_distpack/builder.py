"""Distribution builder.

This module drives one packaging run:

- Runs the optional build and test steps, then any auxiliary scripts, each
  to completion before the next.
- Resolves ``name-version-platform-arch`` from the project metadata file
  and the host.
- Resolves the manifest (entry script, interpreter, ``VERSION`` marker, copy
  rules, standard library groups), then reads every entry into memory.
- Encodes a tarball (gzip optional) and moves it into ``output_dir`` in one
  step. Dry runs stop before anything is written.
"""

from dataclasses import dataclass
import logging
import pathlib
import sys
import time

from python_distpack.archive import write_archive, write_archive_file
from python_distpack.config import (
    VERSION_FILE_MODE,
    VERSION_FILE_NAME,
    DistConfig,
    runtime_destination,
    validate_config,
)
from python_distpack.errors import BuildError
from python_distpack.manifest import LiteralEntry, Manifest, SyntheticEntry, build_manifest
from python_distpack.metadata import ManifestEntry, now_millis, resolve_manifest
from python_distpack.steps import require_success, run_step
from python_distpack.target import ProjectMetadata, TargetConfig, load_project_metadata, resolve_target_config


@dataclass(frozen=True, slots=True)
class DistResult:
    """Outcome of a packaging run.

    :ivar target: Resolved target identifiers.
    :ivar output_path: Where the tarball is (or would be) written.
    :ivar entries: Resolved archive entries in archive order.
    :ivar written: ``False`` for dry runs.
    :ivar archive_size: Size of the written tarball in bytes (0 for dry runs).
    """

    target: TargetConfig
    output_path: pathlib.Path
    entries: tuple[ManifestEntry, ...]
    written: bool
    archive_size: int


def _run_external_steps(config: DistConfig, *, logger: logging.Logger) -> None:
    """Run build, test and script steps in order.

    :param config: Packaging configuration.
    :param logger: Logger for progress output.
    :raises ExternalStepError: On the first failing step.
    """

    if config.run_build is True:
        require_success(run_step("build step", config.build_command, logger=logger))

    if config.run_tests is True:
        require_success(run_step("test step", config.test_command, logger=logger))

    for script in config.scripts:
        require_success(run_step(f"script {script}", (sys.executable, str(script)), logger=logger))


def _literal_entries(config: DistConfig, *, version: str) -> list[LiteralEntry | SyntheticEntry]:
    """Build the literal tier: entry script, interpreter and ``VERSION`` marker.

    :param config: Packaging configuration.
    :param version: Project version written into ``VERSION``.
    :returns: Literal entries in insertion order.
    """

    literals: list[LiteralEntry | SyntheticEntry] = [
        LiteralEntry(source=config.entry_path, destination=config.entry_name),
        LiteralEntry(source=config.runtime_executable, destination=runtime_destination()),
    ]
    if config.version_file is True:
        literals.append(
            SyntheticEntry(
                destination=VERSION_FILE_NAME,
                content=version.encode("utf-8"),
                mode=VERSION_FILE_MODE,
            )
        )
    return literals


def build_dist(config: DistConfig, *, logger: logging.Logger | None = None) -> DistResult:
    """Package an app into ``<name>-<version>-<platform>-<arch>.tar[.gz]``.

    :param config: Packaging configuration.
    :param logger: Optional logger for realtime progress output.
    :returns: Run outcome.
    :raises BuildError: If any step fails; nothing is written in that case.
    """

    if logger is None:
        logger = logging.getLogger("python_distpack")

    validate_config(config)

    t_total0: float = time.perf_counter()
    logger.info(f"python-distpack: entry={config.entry_path} -> {config.entry_name}")
    logger.info(f"python-distpack: runtime={config.runtime_executable}")
    if logger.isEnabledFor(logging.DEBUG) is True:
        logger.debug(f"python-distpack: library_root={config.library_root}")
        logger.debug(f"python-distpack: libraries={list(config.runtime_libraries)}")

    _run_external_steps(config, logger=logger)

    project: ProjectMetadata = load_project_metadata(config.project_file)
    target: TargetConfig = resolve_target_config(project=project)
    output_path: pathlib.Path = (config.output_dir / target.archive_filename(compress=config.compress)).absolute()
    logger.info(f"python-distpack: build target name: {target.target_name}")
    logger.info(f"python-distpack: output file: {output_path}")

    t_manifest0: float = time.perf_counter()
    manifest: Manifest = build_manifest(
        literals=_literal_entries(config, version=project.version),
        copy_rules=config.copy_rules,
        library_selections=config.runtime_libraries,
        library_root=config.library_root,
        strict_copy=config.strict_copy,
        logger=logger,
    )
    entries: list[ManifestEntry] = resolve_manifest(manifest, now=now_millis())
    t_manifest1: float = time.perf_counter()

    total_bytes: int = sum(e.size for e in entries)
    logger.info(
        f"python-distpack: resolved {len(entries)} entries "
        f"({total_bytes / (1024 * 1024):.1f} MiB) in {t_manifest1 - t_manifest0:.2f}s"
    )
    if logger.isEnabledFor(logging.DEBUG) is True:
        for e in entries:
            logger.debug(f'python-distpack: copying "{e.source or "<generated>"}" into archive @ "{e.destination}"')

    if config.dry_run is True:
        logger.info("python-distpack: option `dry-run` was passed; not generating any tarball file")
        return DistResult(
            target=target,
            output_path=output_path,
            entries=tuple(entries),
            written=False,
            archive_size=0,
        )

    t_write0: float = time.perf_counter()
    data: bytes = write_archive(
        entries,
        compress=config.compress,
        compresslevel=config.compresslevel,
        logger=logger,
    )
    try:
        write_archive_file(output_path, data)
    except OSError as e:
        raise BuildError(f"Failed to write {output_path}: {e}") from e
    t_write1: float = time.perf_counter()

    logger.info(
        f"python-distpack: wrote {output_path} ({len(data) / (1024 * 1024):.1f} MiB) in {t_write1 - t_write0:.2f}s"
    )
    t_total1: float = time.perf_counter()
    logger.info(f"python-distpack: done in {t_total1 - t_total0:.2f}s")

    return DistResult(
        target=target,
        output_path=output_path,
        entries=tuple(entries),
        written=True,
        archive_size=len(data),
    )
