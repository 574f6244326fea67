"""Error taxonomy for python-distpack.

Every error raised by the packaging pipeline derives from :class:`BuildError`
so the CLI can report it with a single handler. None of them are retried.
"""

import pathlib


class BuildError(RuntimeError):
    """Raised when packaging fails."""


class ConfigurationError(BuildError):
    """Raised for bad or missing options, project metadata or copy rules."""


class InvalidRuleError(ConfigurationError):
    """Raised when a ``--copy`` rule string is malformed."""


class ExternalStepError(BuildError):
    """Raised when a build, test or script subprocess fails.

    :ivar step: Human-readable step name.
    :ivar returncode: Exit status reported by the subprocess.
    """

    def __init__(self, step: str, returncode: int, detail: str | None = None) -> None:
        self.step: str = step
        self.returncode: int = returncode
        message: str = f"{step} terminated with exit code {returncode}"
        if detail is not None:
            message = f"{message}: {detail}"
        super().__init__(message)


class SourceNotFoundError(BuildError):
    """Raised when a required source file does not exist.

    :ivar path: The missing path (or the pattern that matched nothing).
    """

    def __init__(self, path: pathlib.Path | str, detail: str | None = None) -> None:
        self.path: str = str(path)
        message: str = f"Source not found: {self.path}"
        if detail is not None:
            message = f"{message} ({detail})"
        super().__init__(message)


class SourceUnreadableError(BuildError):
    """Raised when a source file exists but cannot be read.

    :ivar path: The unreadable path.
    """

    def __init__(self, path: pathlib.Path | str, reason: str) -> None:
        self.path: str = str(path)
        super().__init__(f"Cannot read source {self.path}: {reason}")


class EncodingError(BuildError):
    """Raised when the archive cannot be encoded."""
