"""Target resolution helpers.

The output tarball is named after a target quadruple:

- ``name`` and ``version`` come from the project metadata file. Either a
  ``pyproject.toml`` (``[project]`` table) or a YAML document with top-level
  ``name``/``version`` keys works.
- ``platform`` and ``arch`` describe the host the tool runs on.
"""

from dataclasses import dataclass
import pathlib
import platform as _platform
import tomllib
from typing import Any

import yaml

from python_distpack.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class ProjectMetadata:
    """Fields read from the project metadata file.

    :ivar name: Project name.
    :ivar version: Project version string.
    """

    name: str
    version: str


@dataclass(frozen=True, slots=True)
class TargetConfig:
    """Build target identifiers.

    :ivar name: Project name.
    :ivar version: Project version.
    :ivar platform: Normalized host OS name (e.g. ``linux``).
    :ivar arch: Normalized host architecture (e.g. ``x86_64``).
    """

    name: str
    version: str
    platform: str
    arch: str

    @property
    def target_name(self) -> str:
        return f"{self.name}-{self.version}-{self.platform}-{self.arch}"

    def archive_filename(self, *, compress: bool) -> str:
        """Return the tarball file name for this target.

        :param compress: Whether the tarball is gzip-compressed.
        :returns: ``<target_name>.tar`` or ``<target_name>.tar.gz``.
        """

        suffix: str = ".tar.gz" if compress is True else ".tar"
        return self.target_name + suffix


def load_project_metadata(path: pathlib.Path) -> ProjectMetadata:
    """Load ``name`` and ``version`` from a project metadata file.

    :param path: ``.toml`` file (``[project]`` table or top level) or a YAML file.
    :returns: Validated metadata.
    :raises ConfigurationError: If the file is missing, malformed or lacks a field.
    """

    if path.is_file() is False:
        raise ConfigurationError(f"Project metadata file does not exist: {path}")

    try:
        text: str = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Cannot read project metadata file {path}: {e}") from e

    data: Any
    if path.suffix == ".toml":
        try:
            doc: dict[str, Any] = tomllib.loads(text)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Malformed TOML in '{path}': {e}") from e
        project_table: Any = doc.get("project")
        data = project_table if isinstance(project_table, dict) else doc
    else:
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Malformed YAML in '{path}': {e}") from e

    if isinstance(data, dict) is False:
        raise ConfigurationError(f"Expected a mapping at the top of '{path}'.")

    name: str = _required_field(data, "name", path)
    version: str = _required_field(data, "version", path)
    return ProjectMetadata(name=name, version=version)


def _required_field(data: dict[str, Any], key: str, path: pathlib.Path) -> str:
    """Fetch a required non-empty scalar field as a string.

    :param data: Parsed metadata mapping.
    :param key: Field name.
    :param path: Source file (for error messages).
    :returns: Field value as ``str``.
    :raises ConfigurationError: If the field is missing or empty.
    """

    value: Any = data.get(key)
    if value is None or isinstance(value, (dict, list)) is True:
        raise ConfigurationError(f"Missing `{key}` field in '{path}'.")
    text: str = str(value).strip()
    if len(text) == 0:
        raise ConfigurationError(f"Missing `{key}` field in '{path}'.")
    return text


def resolve_target_config(
    *,
    project: ProjectMetadata,
    system: str | None = None,
    machine: str | None = None,
) -> TargetConfig:
    """Combine project metadata with host identifiers into a :class:`~TargetConfig`.

    :param project: Loaded project metadata.
    :param system: Optional OS name override; defaults to :func:`platform.system`.
    :param machine: Optional arch override; defaults to :func:`platform.machine`.
    :returns: Resolved target config.
    :raises ConfigurationError: If the host identifiers cannot be determined.
    """

    platform_name: str = _normalize_identifier(system if system is not None else _platform.system())
    arch: str = _normalize_identifier(machine if machine is not None else _platform.machine())
    if len(platform_name) == 0:
        raise ConfigurationError("Unable to determine the host platform name.")
    if len(arch) == 0:
        raise ConfigurationError("Unable to determine the host architecture.")

    return TargetConfig(
        name=project.name,
        version=project.version,
        platform=platform_name,
        arch=arch,
    )


def _normalize_identifier(value: str) -> str:
    """Normalize a host identifier for use in file names.

    :param value: Raw identifier (e.g. ``"Windows"`` or ``"Darwin"``).
    :returns: Lowercased identifier with spaces replaced by underscores.
    """

    # Kernel names such as "CYGWIN_NT-10.0" keep their punctuation.
    return value.strip().lower().replace(" ", "_")
