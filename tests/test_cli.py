"""
CLI surface: help, exit codes, fatal error reporting and a full packaging run.
"""

import logging
import sys
import tarfile

import pytest

from python_distpack.cli import _build_parser, _resolve_level, config_from_namespace, main
from python_distpack.config import DEFAULT_COPY, DEFAULT_RUNTIME_LIBRARIES, runtime_destination
from python_distpack.errors import ConfigurationError, InvalidRuleError
from python_distpack.manifest import CopyRule
from python_distpack.target import ProjectMetadata, resolve_target_config


def _base_args(workspace):
    return [
        "--no-test",
        "--project",
        "project.yaml",
        "--runtime",
        str(workspace / "runtime" / "python"),
        "--library-root",
        str(workspace / "lib"),
        "--lib",
        "io",
        "-d",
        "out",
    ]


def test_help_exits_zero(capsys):
    with pytest.raises(SystemExit) as exc:
        main(["--help"])
    assert exc.value.code == 0
    assert "usage: python-distpack" in capsys.readouterr().out


def test_missing_entry_argument_is_usage_error(capsys):
    with pytest.raises(SystemExit) as exc:
        main([])
    assert exc.value.code == 2


def test_defaults_follow_config():
    ns = _build_parser().parse_args(["app.py"])
    config = config_from_namespace(ns)
    assert config.copy_rules == tuple(CopyRule(p) for p in DEFAULT_COPY)
    assert config.runtime_libraries == DEFAULT_RUNTIME_LIBRARIES
    assert config.run_tests is True
    assert config.run_build is False
    assert config.compress is True
    assert config.version_file is True
    assert config.dry_run is False


def test_repeated_options_replace_defaults():
    ns = _build_parser().parse_args(
        ["app.py", "-c", "docs/*.md:share", "-c", "LICENSE", "--lib", "json", "-x", "gen.py", "--test-command", "make check"]
    )
    config = config_from_namespace(ns)
    assert config.copy_rules == (CopyRule("docs/*.md", "share"), CopyRule("LICENSE"))
    assert config.runtime_libraries == ("json",)
    assert [str(s) for s in config.scripts] == ["gen.py"]
    assert config.test_command == ("make", "check")


def test_malformed_rule_raises_while_building_config():
    ns = _build_parser().parse_args(["app.py", "-c", "docs/*.md:"])
    with pytest.raises(InvalidRuleError):
        config_from_namespace(ns)


def test_malformed_command_raises():
    ns = _build_parser().parse_args(["app.py", "--build-command", "'unterminated"])
    with pytest.raises(ConfigurationError):
        config_from_namespace(ns)


def test_full_run(workspace, capsys):
    code = main(["app/main.py", *_base_args(workspace), "-c", "docs/*.txt:share"])
    assert code == 0

    target = resolve_target_config(project=ProjectMetadata(name="demo", version="1.2.3"))
    out = workspace / "out" / target.archive_filename(compress=True)
    with tarfile.open(out, "r:gz") as tf:
        names = tf.getnames()
    assert names[:3] == ["bin/main.py", runtime_destination(), "VERSION"]
    assert "share/docs/x.txt" in names
    assert "python-runtime/lib/io/c.py" in names
    assert "build target name: demo-1.2.3" in capsys.readouterr().err


def test_dry_run_flag(workspace):
    assert main(["app/main.py", *_base_args(workspace), "--dry-run"]) == 0
    assert not (workspace / "out").exists()


def test_malformed_rule_fails_before_steps(workspace, capsys):
    marker = workspace / "tested"
    code = main(
        [
            "app/main.py",
            "--test",
            "--test-command",
            f"{sys.executable} -c \"open('tested', 'w').close()\"",
            "-c",
            "docs/*.txt:",
        ]
    )
    assert code == 1
    assert "fatal error: Malformed `copy` string" in capsys.readouterr().err
    assert not marker.exists()


def test_missing_entry_file_reports_path(workspace, capsys):
    code = main(["app/nope.py", *_base_args(workspace)])
    assert code == 1
    err = capsys.readouterr().err
    assert "fatal error: Source not found: app/nope.py" in err
    assert not (workspace / "out").exists()


def test_failing_test_step_reports_status(workspace, capsys):
    args = _base_args(workspace)
    args[args.index("--no-test")] = "--test"
    code = main(["app/main.py", *args, "--test-command", f"{sys.executable} -c \"raise SystemExit(4)\""])
    assert code == 1
    assert "test step terminated with exit code 4" in capsys.readouterr().err


def test_quiet_suppresses_progress(workspace, capsys):
    assert main(["app/main.py", *_base_args(workspace), "-qq", "--dry-run"]) == 0
    assert capsys.readouterr().err == ""


def test_interrupt_exits_130(workspace, monkeypatch, capsys):
    def interrupted(config, *, logger=None):
        raise KeyboardInterrupt

    monkeypatch.setattr("python_distpack.cli.build_dist", interrupted)
    assert main(["app/main.py", *_base_args(workspace)]) == 130
    assert "fatal error: interrupted" in capsys.readouterr().err
    assert not (workspace / "out").exists()


def test_warnings_are_labelled(workspace, capsys):
    assert main(["app/main.py", *_base_args(workspace), "-c", "missing/*.cfg", "--dry-run"]) == 0
    err = capsys.readouterr().err
    assert "warning: python-distpack: copy rule 'missing/*.cfg' matched no files" in err
    assert "info:" not in err


def test_verbosity_levels():
    assert _resolve_level(verbose=0, quiet=0) == logging.INFO
    assert _resolve_level(verbose=2, quiet=0) == logging.DEBUG
    assert _resolve_level(verbose=0, quiet=1) == logging.WARNING
    assert _resolve_level(verbose=3, quiet=2) == logging.ERROR
