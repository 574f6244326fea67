"""
Manifest resolution: copy-rule parsing, destination rules and tier precedence.
"""

import logging
import pathlib

import pytest

from conftest import write
from python_distpack.errors import InvalidRuleError, SourceNotFoundError
from python_distpack.manifest import (
    RUNTIME_PREFIX,
    TIER_COPY,
    TIER_LIBRARY,
    TIER_LITERAL,
    CopyRule,
    LiteralEntry,
    SyntheticEntry,
    build_manifest,
    parse_copy_rule,
)


def _build(workspace, *, literals=(), rules=(), libs=(), strict=False):
    return build_manifest(
        literals=list(literals),
        copy_rules=list(rules),
        library_selections=list(libs),
        library_root=workspace / "lib",
        strict_copy=strict,
    )


@pytest.mark.parametrize(
    "text,expected",
    [
        ("README.md", CopyRule(pattern="README.md")),
        ("docs/*.txt:share", CopyRule(pattern="docs/*.txt", destination="share")),
        ("  LICENSE : legal/LICENSE ", CopyRule(pattern="LICENSE", destination="legal/LICENSE")),
    ],
)
def test_parse_copy_rule(text, expected):
    assert parse_copy_rule(text) == expected


@pytest.mark.parametrize("text", ["docs/*.txt:", "docs/*.txt:   ", ":share", "", "   "])
def test_parse_copy_rule_rejects_malformed(text):
    with pytest.raises(InvalidRuleError):
        parse_copy_rule(text)


def test_glob_without_override_copies_in_place(workspace):
    manifest = _build(workspace, rules=[CopyRule("docs/*.txt")])
    assert sorted(manifest.destinations()) == ["docs/x.txt", "docs/y.txt"]


def test_glob_with_override_prefixes_matched_path(workspace):
    manifest = _build(workspace, rules=[CopyRule("docs/*.txt", "out")])
    assert sorted(manifest.destinations()) == ["out/docs/x.txt", "out/docs/y.txt"]
    assert manifest.get("out/docs/x.txt").source == pathlib.Path("docs/x.txt")


def test_single_match_override_is_literal_destination(workspace):
    manifest = _build(workspace, rules=[CopyRule("docs/x*.txt", "share/readme.txt")])
    assert manifest.destinations() == ["share/readme.txt"]
    assert manifest.get("share/readme.txt").source == pathlib.Path("docs/x.txt")


def test_single_match_without_override_keeps_path(workspace):
    manifest = _build(workspace, rules=[CopyRule("README.md")])
    row = manifest.get("README.md")
    assert row.tier == TIER_COPY
    assert row.source == pathlib.Path("README.md")


def test_dot_slash_pattern_destination_is_normalized(workspace):
    manifest = _build(workspace, rules=[CopyRule("./README.md")])
    assert manifest.destinations() == ["README.md"]


def test_library_selection_destinations(workspace):
    manifest = _build(workspace, libs=["core", "io"])
    assert manifest.destinations() == [
        f"{RUNTIME_PREFIX}/lib/core/a.py",
        f"{RUNTIME_PREFIX}/lib/core/sub/b.py",
        f"{RUNTIME_PREFIX}/lib/io/c.py",
    ]
    assert manifest.get(f"{RUNTIME_PREFIX}/lib/io/c.py").source == workspace / "lib" / "io" / "c.py"


def test_missing_library_group_is_fatal(workspace):
    with pytest.raises(SourceNotFoundError):
        _build(workspace, libs=["nope"])


def test_missing_literal_source_is_fatal(workspace):
    with pytest.raises(SourceNotFoundError) as exc:
        _build(workspace, literals=[LiteralEntry(pathlib.Path("app/missing.py"), "bin/main.py")])
    assert "app/missing.py" in str(exc.value)


def test_zero_match_rule_is_skipped_by_default(workspace, caplog):
    with caplog.at_level(logging.WARNING, logger="python_distpack"):
        manifest = _build(workspace, rules=[CopyRule("nothing/*.bin"), CopyRule("README.md")])
    assert manifest.destinations() == ["README.md"]
    assert "matched no files" in caplog.text


def test_zero_match_rule_is_fatal_when_strict(workspace):
    with pytest.raises(SourceNotFoundError):
        _build(workspace, rules=[CopyRule("nothing/*.bin")], strict=True)


def test_precedence_library_beats_copy_beats_literal(workspace):
    dest = f"{RUNTIME_PREFIX}/lib/core/a.py"
    write(workspace / "literal.py", "literal")
    write(workspace / "user.py", "user")
    manifest = _build(
        workspace,
        literals=[LiteralEntry(pathlib.Path("literal.py"), dest)],
        rules=[CopyRule("user.py", dest)],
        libs=["core"],
    )
    row = manifest.get(dest)
    assert row.tier == TIER_LIBRARY
    assert row.source == workspace / "lib" / "core" / "a.py"


def test_copy_rule_beats_literal(workspace):
    write(workspace / "user.py", "user")
    manifest = _build(
        workspace,
        literals=[LiteralEntry(pathlib.Path("app/main.py"), "bin/main.py")],
        rules=[CopyRule("user.py", "bin/main.py")],
    )
    assert manifest.get("bin/main.py").source == pathlib.Path("user.py")


def test_destinations_unique_and_in_tier_order(workspace):
    manifest = _build(
        workspace,
        literals=[
            LiteralEntry(pathlib.Path("app/main.py"), "README.md"),
            SyntheticEntry("VERSION", b"1.2.3", 0o664),
        ],
        rules=[CopyRule("README.md"), CopyRule("docs/*.txt")],
        libs=["io"],
    )
    dests = manifest.destinations()
    assert len(dests) == len(set(dests)) == len(manifest)
    # README.md was replaced by the copy tier, so it moves behind VERSION.
    assert dests == ["VERSION", "README.md", "docs/x.txt", "docs/y.txt", f"{RUNTIME_PREFIX}/lib/io/c.py"]
    assert [row.tier for row in manifest] == [TIER_LITERAL, TIER_COPY, TIER_COPY, TIER_COPY, TIER_LIBRARY]


def test_synthetic_entry_is_not_stat_checked(workspace):
    manifest = _build(workspace, literals=[SyntheticEntry("VERSION", b"9.9", 0o664)])
    row = manifest.get("VERSION")
    assert row.is_synthetic is True
    assert row.content == b"9.9"
