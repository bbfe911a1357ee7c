"""Upstream rule file schema helpers."""

from datetime import timedelta

import pytest

from schemas.rulefmt import RuleFileSpec, format_duration, parse_duration


@pytest.mark.parametrize(
    "text, expected",
    [
        ("0", timedelta(0)),
        ("30s", timedelta(seconds=30)),
        ("1m", timedelta(minutes=1)),
        ("1h30m", timedelta(hours=1, minutes=30)),
        ("2d", timedelta(days=2)),
        ("1w", timedelta(weeks=1)),
        ("500ms", timedelta(milliseconds=500)),
        ("1m500ms", timedelta(minutes=1, milliseconds=500)),
    ],
)
def test_parse_duration(text, expected):
    assert parse_duration(text) == expected


@pytest.mark.parametrize("text", ["", "1", "1x", "m", "1.5m", "-1m", "1m1h"])
def test_parse_duration_rejects_invalid(text):
    with pytest.raises(ValueError):
        parse_duration(text)


@pytest.mark.parametrize(
    "value, expected",
    [
        (timedelta(0), "0s"),
        (timedelta(seconds=90), "1m30s"),
        (timedelta(hours=2), "2h"),
        (timedelta(milliseconds=1500), "1s500ms"),
    ],
)
def test_format_duration(value, expected):
    assert format_duration(value) == expected


def test_validate_rules_lists_every_problem():
    spec = RuleFileSpec.model_validate(
        {
            "groups": [
                {"name": "a", "rules": [{"record": "r", "alert": "A", "expr": "up"}]},
                {"name": "a", "rules": [{"alert": "B", "expr": ""}]},
                {"name": "b", "rules": [{"record": "r", "expr": 1}]},
            ]
        }
    )

    problems = spec.validate_rules()

    assert len(problems) == 3
    assert "repeated in the same file" in problems[1]
    assert all("group 'b'" not in p for p in problems)
