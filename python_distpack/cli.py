"""Command line interface for python-distpack."""

import argparse
import logging
import pathlib
import shlex
import sys

from python_distpack.builder import build_dist
from python_distpack.config import (
    DEFAULT_COPY,
    DEFAULT_ENTRY_NAME,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_PROJECT_FILE,
    DEFAULT_RUNTIME_LIBRARIES,
    DistConfig,
    default_build_command,
    default_library_root,
    default_test_command,
    parse_copy_rules,
)
from python_distpack.errors import BuildError, ConfigurationError


class _LevelFormatter(logging.Formatter):
    """Plain progress lines; warnings and errors carry a level label."""

    def format(self, record: logging.LogRecord) -> str:
        text: str = super().format(record)
        if record.levelno >= logging.WARNING:
            return f"{record.levelname.lower()}: {text}"
        return text


def _resolve_level(*, verbose: int, quiet: int) -> int:
    """Map ``-v``/``-q`` counts to a logging level; quiet wins over verbose."""

    if quiet >= 2:
        return logging.ERROR
    if quiet == 1:
        return logging.WARNING
    if verbose >= 1:
        return logging.DEBUG
    return logging.INFO


def _configure_logging(*, verbose: int, quiet: int) -> logging.Logger:
    """Route the ``python_distpack`` logger to stderr.

    :param verbose: Verbosity count (0+).
    :param quiet: Quietness count (0+).
    :returns: Configured logger.
    """

    handler: logging.Handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(_LevelFormatter("%(message)s"))

    logger: logging.Logger = logging.getLogger("python_distpack")
    logger.handlers[:] = [handler]
    logger.setLevel(_resolve_level(verbose=verbose, quiet=quiet))
    logger.propagate = False
    return logger


def _build_parser() -> argparse.ArgumentParser:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="python-distpack",
        description=(
            "Package a Python app, its interpreter and standard library groups into one versioned tarball."
        ),
    )
    parser.add_argument(
        "entry",
        type=pathlib.Path,
        help="Path to the app's entry script.",
    )
    parser.add_argument(
        "-d",
        "--dir",
        type=pathlib.Path,
        default=pathlib.Path(DEFAULT_OUTPUT_DIR),
        help="The directory to save the tarball in.",
    )
    parser.add_argument(
        "--name",
        type=str,
        default=DEFAULT_ENTRY_NAME,
        help="The archive path to install the entry script to.",
    )
    parser.add_argument(
        "--project",
        type=pathlib.Path,
        default=pathlib.Path(DEFAULT_PROJECT_FILE),
        help="Project metadata file with `name` and `version` (pyproject.toml or YAML).",
    )
    parser.add_argument(
        "--runtime",
        type=pathlib.Path,
        default=pathlib.Path(sys.executable),
        help="Interpreter binary to bundle (defaults to the current one).",
    )
    parser.add_argument(
        "-c",
        "--copy",
        action="append",
        default=None,
        metavar="GLOB[:PATH]",
        help=(
            "Glob to copy. Append `:<path>` to copy into <path>. Repeatable. "
            f"Defaults to {', '.join(DEFAULT_COPY)}."
        ),
    )
    parser.add_argument(
        "-x",
        "--execute",
        action="append",
        type=pathlib.Path,
        default=None,
        metavar="SCRIPT",
        help="Python script(s) to be invoked before packaging. Repeatable.",
    )
    parser.add_argument(
        "--lib",
        action="append",
        default=None,
        metavar="GROUP",
        help=(
            "Standard library package to bundle. Repeatable. "
            f"Defaults to {' '.join(DEFAULT_RUNTIME_LIBRARIES)}."
        ),
    )
    parser.add_argument(
        "--library-root",
        type=pathlib.Path,
        default=None,
        help="Directory holding the library groups (defaults to the stdlib directory).",
    )
    parser.add_argument(
        "--build",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Invoke the build command before packaging.",
    )
    parser.add_argument(
        "--build-command",
        type=str,
        default=None,
        help="Build command (shell-quoted). Defaults to `python -m build`.",
    )
    parser.add_argument(
        "--test",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Invoke the test command before packaging.",
    )
    parser.add_argument(
        "--test-command",
        type=str,
        default=None,
        help="Test command (shell-quoted). Defaults to `python -m pytest`.",
    )
    parser.add_argument(
        "--gzip",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Apply GZIP compression to the created tarball.",
    )
    parser.add_argument(
        "--compresslevel",
        type=int,
        default=9,
        help="GZIP compression level (0-9).",
    )
    parser.add_argument(
        "--version-file",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Add a VERSION file to the output tarball.",
    )
    parser.add_argument(
        "--strict-copy",
        action="store_true",
        help="Fail when a --copy glob matches no files.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Do not actually create the tarball on disk.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable verbose logging.",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Reduce logging. Pass multiple times to suppress more output.",
    )
    return parser


def _split_command(text: str | None, default: tuple[str, ...], *, option: str) -> tuple[str, ...]:
    """Split a shell-quoted command option.

    :param text: Raw option value, or ``None`` for the default.
    :param default: Default argv.
    :param option: Option name for error messages.
    :returns: argv tuple.
    :raises ConfigurationError: If the value cannot be split.
    """

    if text is None:
        return default
    try:
        return tuple(shlex.split(text))
    except ValueError as e:
        raise ConfigurationError(f"Malformed {option} {text!r}: {e}") from e


def config_from_namespace(ns: argparse.Namespace) -> DistConfig:
    """Build the immutable packaging config from parsed arguments.

    :param ns: Parsed CLI namespace.
    :returns: Packaging config.
    :raises ConfigurationError: If an option value is malformed.
    """

    copy_values: list[str] = ns.copy if ns.copy is not None else list(DEFAULT_COPY)
    libraries: list[str] = ns.lib if ns.lib is not None else list(DEFAULT_RUNTIME_LIBRARIES)
    scripts: list[pathlib.Path] = ns.execute if ns.execute is not None else []

    return DistConfig(
        entry_path=ns.entry,
        entry_name=ns.name,
        runtime_executable=ns.runtime,
        output_dir=ns.dir,
        project_file=ns.project,
        copy_rules=parse_copy_rules(copy_values),
        scripts=tuple(scripts),
        runtime_libraries=tuple(libraries),
        library_root=ns.library_root if ns.library_root is not None else default_library_root(),
        run_build=ns.build,
        build_command=_split_command(ns.build_command, default_build_command(), option="--build-command"),
        run_tests=ns.test,
        test_command=_split_command(ns.test_command, default_test_command(), option="--test-command"),
        compress=ns.gzip,
        compresslevel=ns.compresslevel,
        version_file=ns.version_file,
        dry_run=ns.dry_run,
        strict_copy=ns.strict_copy,
    )


def main(argv: list[str] | None = None) -> int:
    """Run the python-distpack CLI.

    :param argv: Optional argv list (excluding program name).
    :returns: Exit code.
    """

    parser: argparse.ArgumentParser = _build_parser()
    ns = parser.parse_args(argv)
    logger: logging.Logger = _configure_logging(verbose=ns.verbose, quiet=ns.quiet)

    try:
        config: DistConfig = config_from_namespace(ns)
        build_dist(config, logger=logger)
    except BuildError as e:
        print(f"fatal error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("fatal error: interrupted", file=sys.stderr)
        return 130
    return 0
