"""Rule file loading and pattern expansion."""

import os

import pytest

from rules.errors import RuleFileIOError, RuleFileParseError
from rules.loader import expand_rule_files, load_file
from schemas.strategy import PartialResponseStrategy
from tests.conftest import write_rule_file


def test_load_file_tags_groups_with_absolute_path(rules_dir):
    groups = load_file(rules_dir / "combined.yaml")

    expected_file = os.path.abspath(rules_dir / "combined.yaml")
    assert [g.name for g in groups] == ["something5", "something6", "something7"]
    assert all(g.original_file == expected_file for g in groups)
    assert [g.partial_response_strategy for g in groups] == [
        PartialResponseStrategy.WARN,
        PartialResponseStrategy.ABORT,
        PartialResponseStrategy.ABORT,
    ]
    assert [g.strategy.explicit for g in groups] == [True, True, False]


def test_load_relative_path_is_made_absolute(rules_dir, monkeypatch):
    monkeypatch.chdir(rules_dir)

    groups = load_file("warn.yaml")

    assert groups.groups[0].original_file == os.path.abspath(rules_dir / "warn.yaml")


def test_missing_file_raises_io_error(rules_dir):
    with pytest.raises(RuleFileIOError) as excinfo:
        load_file(rules_dir / "non_existing.yaml")

    assert "non_existing.yaml: no such file or directory" in str(excinfo.value)
    assert isinstance(excinfo.value.cause, FileNotFoundError)


def test_invalid_strategy_raises_parse_error_with_file_name(rules_dir):
    with pytest.raises(RuleFileParseError) as excinfo:
        load_file(rules_dir / "wrong.yaml")

    assert "wrong.yaml: failed to unmarshal 'partial_response_strategy'" in str(excinfo.value)
    assert excinfo.value.path == os.path.abspath(rules_dir / "wrong.yaml")


def test_invalid_yaml_raises_parse_error(tmp_path):
    path = write_rule_file(tmp_path, "broken.yaml", "groups: [\n")

    with pytest.raises(RuleFileParseError) as excinfo:
        load_file(path)

    assert str(excinfo.value).startswith(str(path))


def test_rule_expressions_are_not_validated(tmp_path):
    path = write_rule_file(
        tmp_path,
        "odd.yaml",
        """
        groups:
        - name: odd
          rules:
          - alert: Broken
            expr: "this is not ) a valid query"
        """,
    )

    assert len(load_file(path)) == 1


def test_expand_rule_files_globs_and_literals(rules_dir):
    files = expand_rule_files(["w*.yaml", "abort.yaml", "missing.yaml", "warn.yaml"], base_dir=rules_dir)

    assert files == [
        os.path.abspath(rules_dir / "warn.yaml"),
        os.path.abspath(rules_dir / "wrong.yaml"),
        os.path.abspath(rules_dir / "abort.yaml"),
        os.path.abspath(rules_dir / "missing.yaml"),
    ]


def test_expand_rule_files_unmatched_glob_yields_nothing(rules_dir):
    assert expand_rule_files(["*.rules"], base_dir=rules_dir) == []


def test_expand_rule_files_absolute_patterns_ignore_base_dir(rules_dir, tmp_path):
    files = expand_rule_files([str(rules_dir / "abort.yaml")], base_dir=tmp_path / "elsewhere")

    assert files == [os.path.abspath(rules_dir / "abort.yaml")]


def test_non_utf8_content_raises_parse_error(tmp_path):
    path = tmp_path / "latin1.yaml"
    path.write_bytes(b"groups:\n- name: caf\xe9\n  rules: []\n")

    with pytest.raises(RuleFileParseError) as excinfo:
        load_file(path)

    assert excinfo.value.path == os.path.abspath(path)
    assert isinstance(excinfo.value.cause, UnicodeDecodeError)
    assert str(excinfo.value).startswith(f"{os.path.abspath(path)}: 'utf-8' codec can't decode")
