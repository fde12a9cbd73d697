"""Tests for config resolution."""

import math

import pytest

from sourcekit.core.config import (
    ConfigResolutionAbort,
    coerce_number,
    missing_required,
    parse_overrides,
    resolve_config,
)
from sourcekit.models.manifest import ConfigSchemaEntry


def entry(key, type_="string", **kwargs):
    return ConfigSchemaEntry(key=key, name=key.title(), type=type_, **kwargs)


def test_list_override_is_split_and_trimmed():
    result = resolve_config([entry("TAGS", "list")], {"TAGS": "a, b ,c"})
    assert result == {"TAGS": ["a", "b", "c"]}


@pytest.mark.parametrize(
    "raw, expected",
    [("true", True), ("1", True), ("false", False), ("TRUE", False), ("yes", False), ("", False)],
)
def test_boolean_coercion(raw, expected):
    result = resolve_config([entry("FLAG", "boolean")], {"FLAG": raw})
    assert result["FLAG"] is expected


def test_number_coercion():
    schema = [entry("A", "number"), entry("B", "number"), entry("C", "number")]
    result = resolve_config(schema, {"A": "42", "B": "2.5", "C": " 7 "})
    assert result == {"A": 42, "B": 2.5, "C": 7}


def test_non_numeric_number_is_not_rejected():
    result = resolve_config([entry("N", "number")], {"N": "abc"})
    assert math.isnan(result["N"])


def test_blank_number_is_zero():
    assert coerce_number("  ") == 0


@pytest.mark.parametrize("type_", ["string", "secret", "select"])
def test_other_types_keep_raw_string(type_):
    result = resolve_config([entry("K", type_)], {"K": " raw value "})
    assert result == {"K": " raw value "}


def test_default_used_verbatim():
    schema = [entry("COUNT", "number", default="10"), entry("TAGS", "list", default="x, y")]
    result = resolve_config(schema, {})
    assert result == {"COUNT": "10", "TAGS": "x, y"}


def test_override_beats_default():
    result = resolve_config([entry("K", default="d")], {"K": "o"})
    assert result == {"K": "o"}


def test_optional_without_value_is_absent():
    result = resolve_config([entry("K")], {})
    assert result == {}


def test_required_without_value_aborts():
    schema = [entry("TOKEN", "secret", required=True)]
    result = resolve_config(schema, {})
    assert isinstance(result, ConfigResolutionAbort)
    assert result.key == "TOKEN"
    assert "--config TOKEN=VALUE" in result.message


def test_required_with_default_resolves():
    result = resolve_config([entry("K", required=True, default="d")], {})
    assert result == {"K": "d"}


def test_abort_is_fail_fast():
    schema = [
        entry("FIRST", required=True),
        entry("SECOND", required=True),
    ]
    result = resolve_config(schema, {})
    assert result == ConfigResolutionAbort(key="FIRST")


def test_resolution_is_deterministic():
    schema = [entry("A", "list"), entry("B", "boolean"), entry("C", required=True)]
    overrides = {"A": "x,y", "B": "1"}
    assert resolve_config(schema, overrides) == resolve_config(schema, overrides)
    overrides["C"] = "z"
    assert resolve_config(schema, overrides) == resolve_config(schema, overrides)


def test_missing_required_lists_every_key():
    schema = [
        entry("A", required=True),
        entry("B", required=True, default="b"),
        entry("C", required=True),
        entry("D"),
    ]
    assert missing_required(schema, {"C": "c"}) == ["A"]
    assert missing_required(schema, {}) == ["A", "C"]


def test_parse_overrides():
    overrides = parse_overrides(["A=1", "B=x=y", "C=", "bad", "=nokey", "A=2"])
    assert overrides == {"A": "2", "B": "x=y", "C": ""}


@pytest.mark.parametrize(
    "raw, expected",
    [("0x10", 16), ("0b101", 5), ("0o17", 15), ("1e3", 1000.0), (".5", 0.5), ("-3", -3)],
)
def test_number_notations(raw, expected):
    assert coerce_number(raw) == expected


def test_infinity_spelling():
    assert coerce_number("Infinity") == math.inf
    assert coerce_number("-Infinity") == -math.inf


@pytest.mark.parametrize("raw", ["1_000", "inf", "nan", "0x", "12abc"])
def test_python_only_number_spellings_are_nan(raw):
    assert math.isnan(coerce_number(raw))
