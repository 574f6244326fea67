"""External build, test and script steps.

Each step is a subprocess run to completion with inherited stdio before the
next one starts.
"""

from collections.abc import Sequence
from dataclasses import dataclass
import logging
import pathlib
import subprocess

from python_distpack.errors import ExternalStepError

# Shell convention for "command not found".
SPAWN_FAILURE_EXIT: int = 127


@dataclass(frozen=True, slots=True)
class StepResult:
    """Outcome of an external step.

    :ivar name: Step name used in logs and errors.
    :ivar command: Full argv that was executed.
    :ivar returncode: Exit status.
    """

    name: str
    command: tuple[str, ...]
    returncode: int

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def run_step(
    name: str,
    command: Sequence[str],
    *,
    logger: logging.Logger,
    cwd: pathlib.Path | None = None,
) -> StepResult:
    """Run one external step synchronously.

    :param name: Step name used in logs and errors.
    :param command: argv to execute.
    :param logger: Logger for progress output.
    :param cwd: Optional working directory.
    :returns: Step result; inspect :attr:`StepResult.ok`.
    :raises ExternalStepError: If the command cannot be spawned at all.
    """

    argv: tuple[str, ...] = tuple(command)
    if len(argv) == 0:
        raise ExternalStepError(name, SPAWN_FAILURE_EXIT, "empty command")

    logger.info(f"python-distpack: running {name}: {' '.join(argv)}")
    try:
        proc = subprocess.run(list(argv), cwd=cwd, check=False)
    except OSError as e:
        raise ExternalStepError(name, SPAWN_FAILURE_EXIT, f"could not start {argv[0]!r}: {e}") from e

    return StepResult(name=name, command=argv, returncode=proc.returncode)


def require_success(result: StepResult) -> StepResult:
    """Raise if a step failed.

    :param result: Result from :func:`run_step`.
    :returns: The same result when it succeeded.
    :raises ExternalStepError: If the step exited non-zero.
    """

    if result.ok is False:
        raise ExternalStepError(result.name, result.returncode, " ".join(result.command))
    return result
