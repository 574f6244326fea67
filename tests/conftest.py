import logging
import pathlib

import pytest

from python_distpack.config import DistConfig
from python_distpack.manifest import CopyRule


def write(path: pathlib.Path, data: bytes | str) -> pathlib.Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(data, str):
        data = data.encode("utf-8")
    path.write_bytes(data)
    return path


@pytest.fixture
def workspace(tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch) -> pathlib.Path:
    """A small app checkout with a fake interpreter and library root; cwd is set to it."""
    write(tmp_path / "app" / "main.py", "print('hello')\n")
    write(tmp_path / "runtime" / "python", b"\x7fELF-fake-python")
    write(tmp_path / "lib" / "core" / "a.py", "A = 1\n")
    write(tmp_path / "lib" / "core" / "sub" / "b.py", "B = 2\n")
    write(tmp_path / "lib" / "io" / "c.py", "C = 3\n")
    write(tmp_path / "docs" / "x.txt", "x")
    write(tmp_path / "docs" / "y.txt", "y")
    write(tmp_path / "README.md", "# demo\n")
    write(tmp_path / "project.yaml", "name: demo\nversion: 1.2.3\n")
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def make_config(workspace: pathlib.Path):
    """Factory for a DistConfig pointed at the workspace with external steps off."""

    def factory(**overrides) -> DistConfig:
        values = dict(
            entry_path=pathlib.Path("app/main.py"),
            runtime_executable=workspace / "runtime" / "python",
            output_dir=workspace / "out",
            project_file=workspace / "project.yaml",
            copy_rules=(CopyRule(pattern="README.md"),),
            runtime_libraries=("core",),
            library_root=workspace / "lib",
            run_build=False,
            run_tests=False,
        )
        values.update(overrides)
        return DistConfig(**values)

    return factory


@pytest.fixture(autouse=True)
def _reset_logger():
    """Undo CLI logging setup so caplog sees python_distpack records in every test."""
    yield
    logger = logging.getLogger("python_distpack")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
