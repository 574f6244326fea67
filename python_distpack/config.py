"""Packaging configuration.

:class:`DistConfig` is built once at the CLI boundary and handed to
:func:`python_distpack.builder.build_dist`. Copy-rule strings are parsed
while the config is built so malformed rules fail before any step runs.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
import pathlib
import sys
import sysconfig

from python_distpack.archive import validate_compresslevel
from python_distpack.errors import ConfigurationError
from python_distpack.manifest import CopyRule, parse_copy_rule

DEFAULT_ENTRY_NAME: str = "bin/main.py"
DEFAULT_OUTPUT_DIR: str = "dist"
DEFAULT_PROJECT_FILE: str = "pyproject.toml"
DEFAULT_COPY: tuple[str, ...] = ("README.md", "LICENSE")
DEFAULT_RUNTIME_LIBRARIES: tuple[str, ...] = (
    "asyncio",
    "collections",
    "concurrent",
    "email",
    "encodings",
    "html",
    "http",
    "importlib",
    "json",
    "logging",
    "urllib",
)
VERSION_FILE_NAME: str = "VERSION"
VERSION_FILE_MODE: int = 0o664


def default_library_root() -> pathlib.Path:
    return pathlib.Path(sysconfig.get_paths()["stdlib"])


def default_build_command() -> tuple[str, ...]:
    return (sys.executable, "-m", "build")


def default_test_command() -> tuple[str, ...]:
    return (sys.executable, "-m", "pytest")


def runtime_destination() -> str:
    """Archive path for the bundled interpreter binary."""

    return "bin/python.exe" if sys.platform == "win32" else "bin/python"


@dataclass(frozen=True, slots=True)
class DistConfig:
    """Immutable packaging configuration.

    :ivar entry_path: The app's entry script (primary executable).
    :ivar entry_name: Archive path for the entry script.
    :ivar runtime_executable: Interpreter binary to bundle.
    :ivar output_dir: Directory the tarball is written to.
    :ivar project_file: Project metadata file supplying ``name``/``version``.
    :ivar copy_rules: Parsed ``--copy`` rules.
    :ivar scripts: Auxiliary Python scripts run before packaging, in order.
    :ivar runtime_libraries: Standard library groups to bundle.
    :ivar library_root: Directory containing the library groups.
    :ivar run_build: Run ``build_command`` first.
    :ivar build_command: Build step argv.
    :ivar run_tests: Run ``test_command`` after the build step.
    :ivar test_command: Test step argv.
    :ivar compress: Gzip the tarball.
    :ivar compresslevel: Gzip level (0-9).
    :ivar version_file: Add a generated ``VERSION`` file.
    :ivar dry_run: Resolve everything but write nothing.
    :ivar strict_copy: Fail when a copy rule matches no files.
    """

    entry_path: pathlib.Path
    entry_name: str = DEFAULT_ENTRY_NAME
    runtime_executable: pathlib.Path = field(default_factory=lambda: pathlib.Path(sys.executable))
    output_dir: pathlib.Path = pathlib.Path(DEFAULT_OUTPUT_DIR)
    project_file: pathlib.Path = pathlib.Path(DEFAULT_PROJECT_FILE)
    copy_rules: tuple[CopyRule, ...] = tuple(CopyRule(pattern=p) for p in DEFAULT_COPY)
    scripts: tuple[pathlib.Path, ...] = ()
    runtime_libraries: tuple[str, ...] = DEFAULT_RUNTIME_LIBRARIES
    library_root: pathlib.Path = field(default_factory=default_library_root)
    run_build: bool = False
    build_command: tuple[str, ...] = field(default_factory=default_build_command)
    run_tests: bool = True
    test_command: tuple[str, ...] = field(default_factory=default_test_command)
    compress: bool = True
    compresslevel: int = 9
    version_file: bool = True
    dry_run: bool = False
    strict_copy: bool = False


def parse_copy_rules(values: Sequence[str]) -> tuple[CopyRule, ...]:
    """Parse every ``--copy`` string.

    :param values: Raw rule strings.
    :returns: Parsed rules in declaration order.
    :raises InvalidRuleError: On the first malformed rule.
    """

    return tuple(parse_copy_rule(v) for v in values)


def validate_config(config: DistConfig) -> DistConfig:
    """Check option values that can be validated before any work starts.

    :param config: Config to check.
    :returns: The same config.
    :raises ConfigurationError: If an option is invalid.
    """

    if len(config.entry_name.strip()) == 0:
        raise ConfigurationError("--name must not be empty.")
    validate_compresslevel(config.compresslevel)
    if config.run_build is True and len(config.build_command) == 0:
        raise ConfigurationError("--build-command must not be empty.")
    if config.run_tests is True and len(config.test_command) == 0:
        raise ConfigurationError("--test-command must not be empty.")
    for group in config.runtime_libraries:
        if len(group.strip()) == 0 or "/" in group or "\\" in group or group in {".", ".."}:
            raise ConfigurationError(f"Invalid runtime library group: {group!r}")
    return config
